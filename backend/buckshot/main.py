from flask import Blueprint, jsonify

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'status': 'online', 'message': 'Buckshot multiplayer server is running'})


@main.route('/health')
def health():
    return 'OK', 200, {'Content-Type': 'text/plain'}
