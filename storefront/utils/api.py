# --- storefront/utils/api.py ---
from datetime import datetime

from flask import jsonify


def api_ok(message, data=None):
    return {
        "status": True,
        "message": message,
        "data": data if data is not None else {},
        "api_time": datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S"),
    }


def api_error(message, data=None):
    return {
        "status": False,
        "message": message,
        "data": data if data is not None else {},
        "api_time": datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S"),
    }


# ---- standard API response format ------------------------------------------
def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r


def err(msg, status=400, data=None):
    r = jsonify(api_error(msg, data)); r.status_code = status; return r
