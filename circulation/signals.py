from blinker import Namespace

_signals = Namespace()

# Sent after commit for every circulation event.
# kwargs: user_id, kind, message, payload, notification_id
circulation_event = _signals.signal("circulation-event")
