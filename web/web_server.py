"""
Tipline web server: report submission, read endpoints and the query
debug console.
"""

from pathlib import Path
from typing import Any, Dict, Optional

from quart import Quart, render_template, request, jsonify

from tipline.config import get_settings
from tipline.database import Database, DatabaseError
from tipline.logging_config import get_logger
from tipline.records import Form, Location, Report, class_list, get_stats


template_folder = Path(__file__).parent / 'templates'
app = Quart(__name__, template_folder=str(template_folder))
logger = get_logger('tipline.web', 'web.log')

TARGETS_CACHE_SECONDS = 60


class TiplineSite:
    def __init__(self, shared_db: Optional[Database] = None):
        self.db = shared_db  # Use shared database if provided

    async def init_db(self):
        """Initialize database connection"""
        if self.db is not None:
            logger.info("Using shared database connection")
            return

        settings = get_settings()
        try:
            logger.info(f"Configuring database {settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_database}")
            self.db = Database.from_settings(settings)
        except (KeyError, DatabaseError) as e:
            logger.error(f"Database configuration failed: {e}")
            self.db = None


site = TiplineSite()


def set_shared_database(db: Database):
    """Set a shared database connection for the web server"""
    global site
    site = TiplineSite(shared_db=db)
    logger.info("Web server configured with shared database connection")


def build_report_form() -> Form:
    form = Form()
    form.add('sms_contents', required=True, blank_message='Please enter the text of your report.')
    form.add('address_parts')
    form.add('longitude', 'float', invalid_message='Longitude must be a number.')
    form.add('latitude', 'float', invalid_message='Latitude must be a number.')
    form.add('user_id', 'int', invalid_message='User must be a number.')
    return form


def _coordinate(value: Optional[float]) -> Optional[str]:
    # locations stores coordinates as varchar(10)
    if value is None:
        return None
    return f"{value:.6f}"[:10]


def _database_unavailable():
    return jsonify({'error': 'Database not available'}), 500


@app.before_serving
async def startup():
    """Initialize connections on startup"""
    await site.init_db()
    logger.info("Tipline web server started")


@app.after_serving
async def shutdown():
    if site.db is not None:
        site.db.close()


@app.route('/')
async def index():
    """Report submission page"""
    return await render_template('report_form.html', errors=[], values={})


@app.route('/reports', methods=['POST'])
async def submit_report():
    """Validate a submitted report and store it with its location."""
    if site.db is None:
        return _database_unavailable()

    params = await request.form
    form = build_report_form()
    if not form.validate(params):
        logger.info(f"Rejected report submission: {form.errors}")
        return await render_template('report_form.html', errors=form.errors, values=params), 400

    values = form.values
    try:
        with site.db.transaction():
            location_id = None
            if any(values.get(key) is not None for key in ('address_parts', 'longitude', 'latitude')):
                location = Location(
                    site.db,
                    address_parts=values.get('address_parts'),
                    longitude=_coordinate(values.get('longitude')),
                    latitude=_coordinate(values.get('latitude')),
                )
                location_id = location.save()

            report = Report(
                site.db,
                user_id=values.get('user_id'),
                location_id=location_id,
                sms_contents=values['sms_contents'],
            )
            report_id = report.save()
    except DatabaseError as e:
        logger.error(f"Error saving report: {e}")
        return jsonify({'error': 'Could not save report'}), 500

    logger.info(f"Stored report {report_id}")
    return jsonify({'id': report_id, 'location_id': location_id}), 201


@app.route('/api/reports')
async def get_reports():
    """API endpoint listing reports, optionally for one user"""
    if site.db is None:
        return _database_unavailable()

    conditions: Dict[str, Any] = {}
    user_id = request.args.get('user_id')
    if user_id:
        if not user_id.isdigit():
            return jsonify({'error': 'user_id must be a number'}), 400
        conditions['user_id'] = int(user_id)

    try:
        reports = class_list(site.db, Report.table_name, list(Report.columns), conditions, Report)
    except DatabaseError as e:
        logger.error(f"Error fetching reports: {e}")
        return jsonify({'error': 'Could not fetch reports'}), 500

    return jsonify({'reports': [report.to_dict() for report in reports]})


@app.route('/api/targets')
async def get_targets():
    """API endpoint listing targets; the unfiltered list is cached for a minute"""
    if site.db is None:
        return _database_unavailable()

    jurisdiction = request.args.get('jurisdiction')
    try:
        if jurisdiction:
            # Filter values come from clients, so they never get a cache file
            resource = site.db.select('*', 'targets', where='jurisdiction = ?', order='lname, fname',
                                      replacements=[jurisdiction])
        else:
            resource = site.db.select('*', 'targets', order='lname, fname', cache=TARGETS_CACHE_SECONDS)
        targets = site.db.fetch_assoc_all(resource=resource) if resource else []
    except DatabaseError as e:
        logger.error(f"Error fetching targets: {e}")
        return jsonify({'error': 'Could not fetch targets'}), 500

    return jsonify({'targets': targets})


@app.route('/api/health')
async def health():
    if site.db is None:
        return jsonify({'status': 'error', 'database': False}), 503

    if not site.db.health_check():
        return jsonify({'status': 'error', 'database': False}), 503

    return jsonify({'status': 'ok', 'database': True, 'stats': get_stats(site.db)})


@app.route('/debug')
async def debug_console():
    """Query debug console, for allowed addresses only"""
    if site.db is None:
        return _database_unavailable()

    html = site.db.show_debug_console(
        remote_addr=request.remote_addr,
        request_globals={
            'args': dict(request.args),
            'headers': dict(request.headers),
        },
    )
    if html is None:
        return jsonify({'error': 'Not found'}), 404
    return html
