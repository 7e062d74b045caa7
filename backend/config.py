import os


def _origins(raw):
    if not raw or raw.strip() == '*':
        return '*'
    return [o.strip() for o in raw.split(',') if o.strip()]


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    ALLOWED_ORIGINS = _origins(os.environ.get('ALLOWED_ORIGINS'))
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    # Room / lobby limits
    ROOM_CAPACITY = int(os.environ.get('ROOM_CAPACITY', '4'))
    MIN_PLAYERS = int(os.environ.get('MIN_PLAYERS', '2'))
    MAX_ITEMS = int(os.environ.get('MAX_ITEMS', '8'))
    CHAT_HISTORY_LIMIT = int(os.environ.get('CHAT_HISTORY_LIMIT', '50'))
    # Settings a freshly created room starts with
    DEFAULT_ROUNDS = int(os.environ.get('DEFAULT_ROUNDS', '3'))
    DEFAULT_STARTING_HP = int(os.environ.get('DEFAULT_STARTING_HP', '4'))
    DEFAULT_ITEMS_PER_SHIPMENT = int(os.environ.get('DEFAULT_ITEMS_PER_SHIPMENT', '4'))
    # Phase timers (seconds)
    ROUND_ANNOUNCE_DELAY_SEC = float(os.environ.get('ROUND_ANNOUNCE_DELAY_SEC', '3'))
    LOOT_DELAY_SEC = float(os.environ.get('LOOT_DELAY_SEC', '3'))
    RELOAD_DELAY_SEC = float(os.environ.get('RELOAD_DELAY_SEC', '2'))
    # Run phase callbacks synchronously instead of as background tasks
    PHASE_TIMERS_INLINE = os.environ.get('PHASE_TIMERS_INLINE', '').lower() in ('1', 'true', 'yes')
    # Optional: fixed seed for chamber/loot/first-turn randomness. Unset = nondeterministic.
    RNG_SEED = int(os.environ['RNG_SEED']) if os.environ.get('RNG_SEED') else None
