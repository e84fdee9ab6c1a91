"""
Self-service view of a subject, derived entirely from server state.
"""
from apps.verification.models import VerificationDocument
from apps.verification.services import progress
from apps.verification.services.admin_review import admin_review
from apps.verification.services.requirements import requirement_resolver, DOCUMENT_STEPS


def _mask_phone(phone_number):
    if not phone_number:
        return None
    return phone_number[:4] + '*' * max(len(phone_number) - 6, 0) + phone_number[-2:]


def _document_view(document):
    if document is None:
        return {
            'status': VerificationDocument.ABSENT,
            'original_filename': None,
            'size': None,
            'content_type': None,
            'uploaded_at': None,
        }
    return {
        'status': document.status,
        'original_filename': document.original_filename,
        'size': document.size,
        'content_type': document.content_type,
        'uploaded_at': document.uploaded_at,
    }


def project(subject, documents, rejection=None, evaluation=None) -> dict:
    """
    Pure projection of a subject, its documents and its last rejection.

    Args:
        subject: VerificationSubject
        documents: iterable of the subject's VerificationDocument rows
        rejection: RejectionRecord or None
        evaluation: precomputed progress snapshot (computed from documents if omitted)
    """
    by_kind = {doc.kind: doc for doc in documents}
    if evaluation is None:
        evaluation = {
            'progress': progress.compute_progress(subject, by_kind),
            'can_submit': progress.can_submit(subject, by_kind),
            'missing_steps': progress.missing_steps(subject, by_kind),
        }

    steps = requirement_resolver.for_subject(subject)
    optional = requirement_resolver.optional_documents(subject.user_type)
    kinds = [DOCUMENT_STEPS[step] for step in steps if step in DOCUMENT_STEPS] + optional

    data = {
        'status': subject.status,
        'version': subject.version,
        'user_type': subject.user_type,
        'account_type': subject.account_type,
        'phone_confirmed': subject.phone_confirmed,
        'phone_number': _mask_phone(subject.phone_number),
        'steps': [
            {
                'step': step.value,
                'complete': progress.step_complete(subject, step, by_kind),
            }
            for step in steps
        ],
        'documents': {str(kind): _document_view(by_kind.get(kind)) for kind in kinds},
        'optional_documents': [str(kind) for kind in optional],
        'progress': evaluation['progress'],
        'can_submit': evaluation['can_submit'],
        'missing_steps': evaluation['missing_steps'],
        'submitted_at': subject.submitted_at,
        'decided_at': subject.decided_at,
        'business_info': None,
        'last_rejection': None,
    }

    if subject.business_name:
        data['business_info'] = {
            'business_name': subject.business_name,
            'business_description': subject.business_description,
            'has_license_number': bool(subject.business_license_number_encrypted),
        }

    if rejection is not None:
        data['last_rejection'] = {
            'request_id': rejection.request_id,
            'notes': rejection.notes,
            'decided_at': rejection.decided_at,
        }
    return data


def build_status(subject) -> dict:
    """Load documents, cached progress and the rejection record, then project."""
    documents = list(subject.documents.all())
    return project(
        subject,
        documents,
        rejection=admin_review.latest_rejection(subject.pk),
        evaluation=progress.snapshot(subject),
    )

