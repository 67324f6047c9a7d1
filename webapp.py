#!/usr/bin/env python3
"""
Flask Web UI for the contact provisioner
Upload a contacts CSV and create the mail contacts from the browser
"""

import os
import logging
import uuid
from pathlib import Path
from datetime import datetime
from typing import Callable, Optional
from flask import Flask, render_template, request, redirect, url_for, send_file, flash, jsonify
from werkzeug.utils import secure_filename

from core.contact_provisioner import ContactProvisioner
from core.directory_client import ActiveDirectoryClient, ContactDirectory, InMemoryContactDirectory
from core.exceptions import ProvisioningError
from utils.config import Config, StaticConfigSupplier
from utils.reporting import export_results, failures_frame

UPLOAD_FOLDER = 'uploads'
OUTPUT_FOLDER = 'downloads'
ALLOWED_EXTENSIONS = {'csv'}
MAX_FILE_SIZE = 16 * 1024 * 1024  # 16MB max file size

DirectoryFactory = Callable[[Config], ContactDirectory]


def active_directory_factory(config: Config) -> ContactDirectory:
    """Directory used for real runs"""
    if not config.validate_ad_config():
        missing_vars = config.get_missing_ad_vars()
        raise ProvisioningError(f"Missing AD configuration: {', '.join(missing_vars)}")
    return ActiveDirectoryClient(config.ad_server, config.ad_username,
                                 config.ad_password, config.base_dn)


def allowed_file(filename: str) -> bool:
    """Check if file extension is allowed"""
    if '.' not in filename:
        return False
    return filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def setup_logging():
    """Setup logging for the web application"""
    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_filename = log_dir / f"webapp_{timestamp}.log"

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_filename),
            logging.StreamHandler()
        ]
    )


def create_app(directory_factory: Optional[DirectoryFactory] = None,
               upload_folder: str = UPLOAD_FOLDER,
               output_folder: str = OUTPUT_FOLDER) -> Flask:
    app = Flask(__name__)
    app.secret_key = os.environ.get('FLASK_SECRET_KEY', 'your-secret-key-change-this')
    app.config['MAX_CONTENT_LENGTH'] = MAX_FILE_SIZE

    os.makedirs(upload_folder, exist_ok=True)
    os.makedirs(output_folder, exist_ok=True)

    factory = directory_factory or active_directory_factory

    @app.route('/')
    def index():
        """Main page with upload form"""
        config = Config()
        return render_template('index.html', defaults={
            'organizational_unit': config.contact_ou or '',
            'proxy_prefix': config.proxy_prefix or '',
            'proxy_domain': config.proxy_domain or '',
            'auto_truncate': bool(config.auto_truncate),
        })

    @app.route('/provision', methods=['POST'])
    def provision():
        """Handle file upload and create the contacts"""
        if 'file' not in request.files or request.files['file'].filename == '':
            flash('No file selected', 'error')
            return redirect(url_for('index'))

        file = request.files['file']
        if not allowed_file(file.filename):
            flash('Invalid file type. Please upload a .csv file', 'error')
            return redirect(url_for('index'))

        dry_run = request.form.get('dry_run') == 'on'
        supplier = StaticConfigSupplier(
            organizational_unit=request.form.get('organizational_unit', ''),
            auto_truncate=request.form.get('auto_truncate') == 'on',
            proxy_prefix=request.form.get('proxy_prefix', ''),
            proxy_domain=request.form.get('proxy_domain', ''),
        )

        job_id = str(uuid.uuid4())
        input_path = os.path.join(upload_folder, f"{job_id}_{secure_filename(file.filename)}")
        file.save(input_path)

        try:
            run_config = supplier.get_run_configuration()
            directory = InMemoryContactDirectory() if dry_run else factory(Config())

            app.logger.info(f"Starting provisioning job {job_id} (dry run: {dry_run})")
            with directory:
                provisioner = ContactProvisioner(directory, run_config)
                summary = provisioner.run(input_path)

        except ProvisioningError as e:
            app.logger.error(f"Provisioning job {job_id} failed: {e}")
            flash(f'Processing failed: {e}', 'error')
            return redirect(url_for('index'))
        finally:
            if os.path.exists(input_path):
                os.remove(input_path)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        output_name = f"{job_id}_contacts_{timestamp}.csv"
        try:
            export_results(provisioner.results, summary, os.path.join(output_folder, output_name))
        except OSError as e:
            app.logger.error(f"Could not write results for job {job_id}: {e}")
            flash(f'Contacts were processed but the results file could not be written: {e}', 'error')
            output_name = None
        app.logger.info(f"Provisioning job {job_id} completed")

        return render_template('results.html',
                               job_id=job_id,
                               dry_run=dry_run,
                               summary=summary,
                               results=provisioner.results,
                               failures=failures_frame(summary).to_dict('records'),
                               output_file=output_name)

    @app.route('/download/<filename>')
    def download_file(filename):
        """Download a results file"""
        file_path = os.path.join(output_folder, secure_filename(filename))
        if not os.path.exists(file_path):
            flash('File not found', 'error')
            return redirect(url_for('index'))
        return send_file(os.path.abspath(file_path), as_attachment=True)

    @app.route('/health')
    def health_check():
        """Health check endpoint"""
        config = Config()
        ad_config_valid = config.validate_ad_config()

        return jsonify({
            'status': 'healthy' if ad_config_valid else 'configuration_error',
            'ad_config_valid': ad_config_valid,
            'missing': config.get_missing_ad_vars(),
        })

    return app


if __name__ == '__main__':
    setup_logging()
    app = create_app()

    config = Config()
    if not config.validate_ad_config():
        missing_vars = config.get_missing_ad_vars()
        app.logger.warning(f"Missing AD configuration: {', '.join(missing_vars)}")
        print("Warning: Missing AD configuration variables. Only dry runs will work.")
        print(f"   Missing: {', '.join(missing_vars)}")
    else:
        app.logger.info("AD configuration validated successfully")

    port = int(os.environ.get('PORT', 5000))
    debug = os.environ.get('FLASK_DEBUG', 'False').lower() == 'true'

    print(f"Starting contact provisioner Web UI on port {port}")
    app.run(host='0.0.0.0', port=port, debug=debug)
