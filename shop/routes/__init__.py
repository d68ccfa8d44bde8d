from werkzeug.datastructures import MultiDict
from flask import request


def json_formdata():
    """Request JSON as form data: nulls dropped, values as the strings WTForms parses."""
    data = request.get_json(silent=True) or {}
    formdata = MultiDict()
    for key, value in data.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = 'true' if value else 'false'
        formdata.add(key, str(value))
    return formdata
