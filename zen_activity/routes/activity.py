from flask import Blueprint, current_app, jsonify, request

from zen_activity.services.activity import InvalidQueryError, parse_range, validate_address

bp = Blueprint("activity", __name__, url_prefix="/")

ACTIVITY_CACHE_CONTROL = 's-maxage=15, stale-while-revalidate=30'
STATS_CACHE_CONTROL = 's-maxage=30, stale-while-revalidate=60'
BRIDGED_PENDING = 'coming_soon'


def _service():
    return current_app.extensions['activity_service']


def _query():
    address = validate_address(request.args.get('address'))
    start, end = parse_range(request.args)
    return address, start, end


@bp.route("/api/activity", methods=["GET"])
def activity():
    address, start, end = _query()
    rows = _service().build_activity(address, start, end)
    resp = jsonify({'address': address, 'window': {'start': start, 'end': end}, 'count': len(rows), 'activity': rows})
    resp.headers['Cache-Control'] = ACTIVITY_CACHE_CONTROL
    return resp


@bp.route("/api/stats", methods=["GET"])
def stats():
    address, start, end = _query()
    kpis = dict(_service().build_stats(address, start, end))
    # Bridge tracking is not implemented yet; the dashboard renders this marker
    kpis.setdefault('bridged', BRIDGED_PENDING)
    resp = jsonify({'address': address, 'window': {'start': start, 'end': end}, 'kpis': kpis})
    resp.headers['Cache-Control'] = STATS_CACHE_CONTROL
    return resp


@bp.route("/health", methods=["GET"])
def health():
    return jsonify({'status': 'ok'}), 200


@bp.app_errorhandler(InvalidQueryError)
def invalid_query(e):
    return jsonify({'error': str(e)}), 400


@bp.app_errorhandler(405)
def method_not_allowed(e):
    resp = jsonify({'error': 'Method Not Allowed'})
    resp.status_code = 405
    resp.headers['Allow'] = 'GET'
    return resp


@bp.app_errorhandler(500)
def internal_error(e):
    original = getattr(e, 'original_exception', None) or e
    return jsonify({'error': str(original)}), 500
