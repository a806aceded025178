"""JSON API over the library service: scanning, filtering, selection and fixes."""
from datetime import date, datetime, timezone
from typing import Optional
import logging

from flask import Blueprint, jsonify, request

from photodatefix import get_service
from photodatefix.lib.exceptions import ScanInProgress, TransactionError

logger = logging.getLogger(__name__)

api_bp = Blueprint('api', __name__, url_prefix='/api')


def serialize_item(item) -> dict:
    """Serialize a FlaggedItem for the API."""
    handle = item.asset_handle
    return {
        'identifier': item.identifier,
        'filename': getattr(handle, 'filename', None),
        'recorded_date': item.recorded_date.isoformat(),
        'extracted_date': item.extracted_date.isoformat(),
        'time_difference': item.time_difference,
        'formatted_time_difference': item.formatted_time_difference,
        'selected': item.selected,
    }


def parse_bound(value: Optional[str]) -> date | datetime | None:
    """
    Parse a filter bound: 'YYYY-MM-DD' (whole day) or an ISO datetime.

    Naive datetimes are taken as UTC.

    Raises:
        ValueError: if value is not an ISO date or datetime
    """
    if value is None or value == '':
        return None
    if len(value) == 10:
        return date.fromisoformat(value)
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@api_bp.route('/scan', methods=['POST'])
def start_scan():
    """Start a background scan of the library."""
    service = get_service()
    try:
        service.start_scan()
    except ScanInProgress as e:
        return jsonify({'error': str(e)}), 409

    return jsonify({'status': 'scanning'}), 202


@api_bp.route('/scan/status', methods=['GET'])
def scan_status():
    """Get scan state and progress for polling."""
    return jsonify(get_service().snapshot())


@api_bp.route('/scan/cancel', methods=['POST'])
def cancel_scan():
    """Ask a running scan to stop."""
    cancelled = get_service().cancel_scan()
    return jsonify({'cancelled': cancelled})


@api_bp.route('/mismatches', methods=['GET'])
def list_mismatches():
    """List mismatched photos inside the current filter."""
    service = get_service()
    items = service.filtered_photos
    return jsonify({
        'items': [serialize_item(item) for item in items],
        'count': len(items),
        'total': len(service.mismatched_photos),
        'all_selected': service.all_selected,
    })


@api_bp.route('/filter', methods=['PUT'])
def set_filter():
    """Set the date filter.

    Accepts JSON body: {start: 'YYYY-MM-DD' | ISO datetime | null, end: ...}
    """
    data = request.get_json(silent=True) or {}
    try:
        start = parse_bound(data.get('start'))
        end = parse_bound(data.get('end'))
    except (TypeError, ValueError) as e:
        return jsonify({'error': f'Invalid date: {e}'}), 400

    get_service().set_filter(start, end)
    return jsonify(get_service().snapshot()['filter'])


@api_bp.route('/filter', methods=['DELETE'])
def clear_filter():
    """Remove the date filter."""
    get_service().clear_filter()
    return jsonify({'start': None, 'end': None})


@api_bp.route('/mismatches/<identifier>/toggle', methods=['POST'])
def toggle_selection(identifier):
    """Toggle selection of one mismatched photo."""
    selected = get_service().toggle_selection(identifier)
    if selected is None:
        return jsonify({'error': 'Item not found'}), 404
    return jsonify({'identifier': identifier, 'selected': selected})


@api_bp.route('/mismatches/select-all', methods=['POST'])
def select_all():
    service = get_service()
    service.select_all()
    return jsonify({'selected_count': len(service.selected_items)})


@api_bp.route('/mismatches/deselect-all', methods=['POST'])
def deselect_all():
    service = get_service()
    service.deselect_all()
    return jsonify({'selected_count': len(service.selected_items)})


@api_bp.route('/fix', methods=['POST'])
def fix_dates():
    """Overwrite library dates with EXIF capture dates.

    Accepts optional JSON body: {identifiers: [...]}. Without identifiers,
    the current selection (inside the filter) is fixed.

    Returns:
        JSON: {fixed, remaining}
    """
    service = get_service()
    data = request.get_json(silent=True) or {}
    identifiers = data.get('identifiers')

    if identifiers is None:
        items = service.selected_items
    elif not isinstance(identifiers, list) or not all(isinstance(i, str) for i in identifiers):
        return jsonify({'error': 'identifiers must be a list of strings'}), 400
    else:
        by_id = {item.identifier: item for item in service.mismatched_photos}
        missing = [identifier for identifier in identifiers if identifier not in by_id]
        if missing:
            return jsonify({'error': 'Unknown items', 'missing': missing}), 404
        items = [by_id[identifier] for identifier in identifiers]

    try:
        fixed = service.fix_dates(items)
    except ScanInProgress as e:
        return jsonify({'error': str(e)}), 409
    except TransactionError as e:
        logger.error(f"Fix failed for {len(items)} photos: {e.message}")
        return jsonify({'error': e.message}), 500

    return jsonify({'fixed': fixed, 'remaining': len(service.mismatched_photos)})
