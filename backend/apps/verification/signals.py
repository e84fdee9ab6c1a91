"""
Signals sent by the verification services.

documents_changed: a document was uploaded or removed (kwargs: subject_id, kind)
subject_transitioned: a state machine transition committed (kwargs: subject_id, from_status, to_status)
"""
from django.dispatch import Signal

documents_changed = Signal()
subject_transitioned = Signal()
