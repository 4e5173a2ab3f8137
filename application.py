"""
K&R Powerwashing Back Office

Office and crew API for quotes, jobs, invoices and appointments. The app is
built by app_init.create_app(); this module exposes it for local runs and
for `gunicorn application:app`.
"""
import os
import logging

from app_init import create_app

logger = logging.getLogger(__name__)

app = create_app()


if __name__ == '__main__':
    if app.config.get('STORAGE_MODE') == 'database':
        print("✅ Using the database collection store")
    else:
        print(f"📁 Using JSON collection files in {app.config['STORE_FOLDER']}")

    port = int(os.environ.get('PORT', 5000))
    app.run(host='0.0.0.0', port=port, debug=False)
