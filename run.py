#!/usr/bin/env python3
"""
photodatefix Application Entry Point.

Run the development server:
    python run.py

Register a folder of photos, then serve:
    python run.py --import /path/to/photos

Scan once from the command line and print the mismatches:
    python run.py --scan

Or with Flask CLI:
    FLASK_APP=run flask run

For production, use a proper WSGI server like Gunicorn:
    gunicorn -w 1 -b 0.0.0.0:5000 'run:app'
"""
import logging
import os
import sys

from photodatefix import create_app, get_service

# Configure logging for all photodatefix modules
logging.basicConfig(
    level=logging.INFO,
    format='[%(asctime)s] %(levelname)s:%(name)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
    stream=sys.stdout,
)
# Reduce SQLAlchemy noise
logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)

# Determine config from environment, default to development
config_name = os.environ.get('FLASK_ENV', 'development')

app = create_app(config_name)


def import_library(path: str) -> int:
    """Register every media file under path in the library."""
    with app.app_context():
        service = get_service(app)
        added = service.store.import_directory(path)
    return len(added)


def scan_and_report(fix: bool = False) -> int:
    """Run one synchronous scan and print each mismatch."""
    with app.app_context():
        service = get_service(app)
        result = service.scan_for_mismatches()
        for item in result.items:
            print(
                f"{item.identifier}  {getattr(item.asset_handle, 'filename', '')}  "
                f"library={item.recorded_date.isoformat()}  "
                f"exif={item.extracted_date.isoformat()}  "
                f"({item.formatted_time_difference})"
            )
        print(f"{result.flagged_count} mismatches in {result.scanned} photos")

        if fix and result.items:
            fixed = service.fix_dates(result.items)
            print(f"Fixed {fixed} photo dates")
    return 0


if __name__ == '__main__':
    import argparse

    parser = argparse.ArgumentParser(description='photodatefix development server')
    parser.add_argument('--import', dest='import_path', metavar='DIR',
                        help='Register media files under DIR before starting')
    parser.add_argument('--scan', action='store_true',
                        help='Scan once, print mismatches and exit')
    parser.add_argument('--fix', action='store_true',
                        help='With --scan: also fix every mismatch found')
    parser.add_argument('--port', type=int, default=5000,
                        help='Port to listen on (default: 5000)')
    parser.add_argument('--host', default='127.0.0.1',
                        help='Host to bind to (default: 127.0.0.1)')
    args = parser.parse_args()

    print(f"Starting photodatefix in {config_name} mode...")
    print(f"Database: {app.config['SQLALCHEMY_DATABASE_URI']}")
    print(f"Timezone: {app.config['TIMEZONE'] or 'system local'}")
    print(f"Tolerance: {app.config['DATE_TOLERANCE_SECONDS']}s")

    if args.import_path:
        count = import_library(args.import_path)
        print(f"Imported {count} files from {args.import_path}")

    if args.scan:
        sys.exit(scan_and_report(fix=args.fix))

    # Single process: the working set lives in memory
    app.run(
        host=args.host,
        port=args.port,
        debug=app.config.get('DEBUG', False),
        use_reloader=False,
        threaded=True,
    )
