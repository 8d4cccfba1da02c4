from flask import Blueprint, Response, jsonify, request, current_app
from flask_login import login_required, current_user

from services.object_storage import ObjectStorage, content_type_for, ensure_in_company, generate_object_path
from utils.errors import BadRequestError

# Uploads and downloads of files kept in object storage, namespaced per company.
objects_bp = Blueprint('objects', __name__, url_prefix='/objects')

def _company_id():
    if not current_user.company_id:
        raise BadRequestError("Company ID is required")
    return current_user.company_id

def _uploaded_file():
    file = request.files.get('file')
    if file is None or not file.filename:
        raise BadRequestError("File is required")
    return file

def _store(file, object_path):
    storage = ObjectStorage.from_app_config()
    storage.upload(file.read(), object_path, content_type=content_type_for(object_path))
    current_app.logger.info(f"User {current_user.id} uploaded {object_path}.")
    return jsonify({"objectPath": object_path, "url": storage.public_path(object_path), "success": True}), 201

@objects_bp.route('/upload', methods=['POST'])
@login_required
def upload_object():
    """Multipart upload: `file`, `type` (creatives, logos or documents) and optional `subPath`."""
    company_id = _company_id()
    object_type = request.form.get('type')
    file = _uploaded_file()
    object_path = generate_object_path(company_id, object_type, file.filename, request.form.get('subPath'))
    return _store(file, object_path)

@objects_bp.route('/upload/creative', methods=['POST'])
@login_required
def upload_creative():
    """Creative image for an ad set, stored under creatives/{adSetId}/."""
    company_id = _company_id()
    ad_set_id = request.form.get('adSetId')
    if not ad_set_id:
        raise BadRequestError("AdSet ID is required")
    file = _uploaded_file()
    return _store(file, generate_object_path(company_id, 'creatives', file.filename, ad_set_id))

@objects_bp.route('/upload/logo', methods=['POST'])
@login_required
def upload_logo():
    company_id = _company_id()
    file = _uploaded_file()
    return _store(file, generate_object_path(company_id, 'logos', file.filename))

@objects_bp.route('', methods=['DELETE'])
@login_required
def delete_object():
    payload = request.get_json(silent=True) or {}
    object_path = payload.get('objectPath') if isinstance(payload, dict) else None
    if not object_path:
        raise BadRequestError("Object path is required")
    ensure_in_company(object_path, _company_id())
    ObjectStorage.from_app_config().delete(object_path)
    current_app.logger.info(f"User {current_user.id} deleted {object_path}.")
    return jsonify({"success": True})

@objects_bp.route('/<path:object_path>', methods=['GET'])
def download_object(object_path):
    """
    Streams a stored object. Object names carry a random UUID, so they are
    served without a session (they are used directly as <img> sources).
    """
    data, content_type = ObjectStorage.from_app_config().download(object_path)
    return Response(data, mimetype=content_type,
                    headers={"Cache-Control": "private, max-age=3600", "X-Content-Type-Options": "nosniff"})
