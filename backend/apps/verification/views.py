"""
Verification API views with Swagger documentation.
Every workflow error is a VerificationError rendered by common.exceptions.api_exception_handler.
"""
from rest_framework.decorators import api_view, permission_classes, throttle_classes, parser_classes
from rest_framework.parsers import MultiPartParser, FormParser, JSONParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework import status
from drf_spectacular.utils import extend_schema, OpenApiParameter, OpenApiExample, OpenApiResponse
from drf_spectacular.types import OpenApiTypes

from apps.verification.models import VerificationSubject, VerificationDocument
from apps.verification.permissions import IsVerificationReviewer
from apps.verification.serializers import (
    SendCodeSerializer,
    VerifyCodeSerializer,
    BusinessInfoSerializer,
    DocumentUploadSerializer,
    VersionedActionSerializer,
    ApproveRequestSerializer,
    RejectRequestSerializer,
    VerificationStatusSerializer,
    VerificationDocumentSerializer,
    VerificationRequestSerializer,
    RequestDetailSerializer,
)
from apps.verification.services.admin_review import admin_review
from apps.verification.services.document_store import document_store
from apps.verification.services.phone import phone_service
from apps.verification.services.projection import build_status
from apps.verification.services.state_machine import state_machine
from common.throttling import OTPThrottle, OTPVerifyThrottle, VerificationThrottle
from common.utils import get_client_ip


ERROR_EXAMPLES = {
    'invalid_state': OpenApiExample(
        'Invalid State',
        value={'error': 'invalid_state', 'detail': 'Documents cannot be changed while verification is under_review.', 'status': 'under_review'},
    ),
    'stale_state': OpenApiExample(
        'Stale State',
        value={'error': 'stale_state', 'detail': 'Verification record was changed by someone else. Refresh and try again.', 'subject_id': 7, 'current_version': 5, 'retryable': True},
    ),
}


def _subject_for(user) -> VerificationSubject:
    subject, _ = VerificationSubject.objects.select_related('user').get_or_create(user=user)
    return subject


def _status_response(subject, http_status=status.HTTP_200_OK):
    return Response(VerificationStatusSerializer(build_status(subject)).data, status=http_status)


# ==================== Self-service Endpoints ====================

@extend_schema(
    tags=['Verification'],
    summary='Get my verification status',
    description='''
    Returns the caller's verification state: overall status, required steps,
    document states, progress percentage, whether submission is currently allowed
    and the last rejection (kept after a resubmission reset).

    `version` is the optimistic concurrency token; pass it back as
    `expected_version` on any write to detect concurrent changes.
    ''',
    responses={
        200: VerificationStatusSerializer,
        401: OpenApiResponse(description='Authentication required'),
    }
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def verification_status(request):
    """Get the caller's verification status."""
    return _status_response(_subject_for(request.user))


@extend_schema(
    tags=['Phone Verification'],
    summary='Send phone confirmation code',
    description='''
    Sends a 6-digit code to the given international phone number.

    **Rules:**
    - Code expires in 10 minutes
    - At most 3 codes per number per 10 minutes
    - The number cannot be confirmed on another account
    ''',
    request=SendCodeSerializer,
    examples=[
        OpenApiExample('International Phone', value={'phone_number': '+447700900123'}, request_only=True),
    ],
    responses={
        200: OpenApiResponse(
            description='Code sent',
            examples=[OpenApiExample('Success', value={'message': 'OTP sent successfully', 'expires_in_minutes': 10})]
        ),
        400: OpenApiResponse(description='Invalid or already used phone number'),
        409: OpenApiResponse(description='Phone already confirmed'),
        429: OpenApiResponse(description='Too many codes requested'),
        503: OpenApiResponse(description='SMS gateway unavailable'),
        504: OpenApiResponse(description='SMS gateway timed out'),
    }
)
@api_view(['POST'])
@permission_classes([IsAuthenticated])
@throttle_classes([OTPThrottle])
def send_phone_code(request):
    """Send a confirmation code to a phone number."""
    serializer = SendCodeSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    subject = _subject_for(request.user)
    result = phone_service.send_code(
        subject.pk,
        serializer.validated_data['phone_number'],
        performed_by=request.user,
        ip_address=get_client_ip(request),
    )
    if not result['success']:
        return Response(
            {'error': 'throttled', 'detail': result['message']},
            status=status.HTTP_429_TOO_MANY_REQUESTS
        )
    return Response(result, status=status.HTTP_200_OK)


@extend_schema(
    tags=['Phone Verification'],
    summary='Verify phone confirmation code',
    description='''
    Checks the code and confirms the phone. Moves the verification to
    `in_progress`. Confirming an already confirmed phone changes nothing.
    ''',
    request=VerifyCodeSerializer,
    examples=[
        OpenApiExample('Verify', value={'phone_number': '+447700900123', 'code': '123456'}, request_only=True),
    ],
    responses={
        200: VerificationStatusSerializer,
        400: OpenApiResponse(
            description='Wrong or expired code',
            examples=[OpenApiExample('Invalid Code', value={'error': 'validation_error', 'detail': 'Invalid OTP code.', 'field': 'code'})]
        ),
        409: OpenApiResponse(description='Invalid or stale state', examples=[ERROR_EXAMPLES['invalid_state']]),
    }
)
@api_view(['POST'])
@permission_classes([IsAuthenticated])
@throttle_classes([OTPVerifyThrottle])
def verify_phone_code(request):
    """Verify a phone confirmation code."""
    serializer = VerifyCodeSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    subject = phone_service.verify_code(
        _subject_for(request.user).pk,
        serializer.validated_data['phone_number'],
        serializer.validated_data['code'],
        performed_by=request.user,
        ip_address=get_client_ip(request),
    )
    return _status_response(subject)


@extend_schema(
    tags=['Verification'],
    summary='Declare business info',
    description='''
    Stores the business name, description and licence number carried by the
    next submission. Business accounts only; not allowed while under review or
    after verification. The licence number is encrypted at rest.
    ''',
    request=BusinessInfoSerializer,
    responses={
        200: VerificationStatusSerializer,
        400: OpenApiResponse(description='Invalid business info'),
        409: OpenApiResponse(description='Invalid or stale state', examples=list(ERROR_EXAMPLES.values())),
    }
)
@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def update_business_info(request):
    """Declare business info."""
    serializer = BusinessInfoSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    subject = state_machine.update_business_info(
        _subject_for(request.user).pk,
        data['business_name'],
        business_description=data['business_description'],
        business_license_number=data['business_license_number'],
        performed_by=request.user,
        ip_address=get_client_ip(request),
        expected_version=data.get('expected_version'),
    )
    return _status_response(subject)


@extend_schema(
    tags=['Verification'],
    summary='Upload or remove a verification document',
    description='''
    **POST** uploads (or replaces) the document of a kind. Multipart form with a
    `file` field; images only, at most 10MB. Not allowed while under review or
    after verification.

    **DELETE** removes the document. Only allowed while `in_progress` or `rejected`.
    ''',
    parameters=[
        OpenApiParameter(
            name='kind',
            type=OpenApiTypes.STR,
            location=OpenApiParameter.PATH,
            enum=VerificationDocument.Kind.values,
            description='Document kind',
            required=True,
        )
    ],
    request={'multipart/form-data': DocumentUploadSerializer},
    responses={
        200: VerificationStatusSerializer,
        201: VerificationDocumentSerializer,
        400: OpenApiResponse(description='Missing file or kind not applicable to the account'),
        404: OpenApiResponse(description='No document of this kind to remove'),
        409: OpenApiResponse(description='Invalid or stale state', examples=list(ERROR_EXAMPLES.values())),
        413: OpenApiResponse(
            description='File too large',
            examples=[OpenApiExample('Too Large', value={'error': 'payload_too_large', 'detail': 'File size cannot exceed 10MB.', 'max_size': 10485760, 'size': 12000000})]
        ),
        415: OpenApiResponse(description='Not an image'),
        503: OpenApiResponse(description='Storage unavailable'),
        504: OpenApiResponse(description='Storage timed out'),
    }
)
@api_view(['POST', 'DELETE'])
@permission_classes([IsAuthenticated])
@parser_classes([MultiPartParser, FormParser, JSONParser])
def document_detail(request, kind):
    """Upload or remove a document of the given kind."""
    subject = _subject_for(request.user)

    if request.method == 'DELETE':
        serializer = VersionedActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        document_store.remove(
            subject.pk,
            kind,
            performed_by=request.user,
            ip_address=get_client_ip(request),
            expected_version=serializer.validated_data.get('expected_version'),
        )
        return _status_response(_subject_for(request.user))

    serializer = DocumentUploadSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    document = document_store.upload(
        subject.pk,
        kind,
        serializer.validated_data['file'],
        performed_by=request.user,
        ip_address=get_client_ip(request),
        expected_version=serializer.validated_data.get('expected_version'),
    )
    return Response(VerificationDocumentSerializer(document).data, status=status.HTTP_201_CREATED)


@extend_schema(
    tags=['Verification'],
    summary='Submit for review',
    description='''
    Moves the verification from `in_progress` to `under_review` and creates a
    review request snapshot. Requires a confirmed phone and every required
    document uploaded; otherwise returns `gate_not_satisfied` with the missing steps.
    ''',
    request=VersionedActionSerializer,
    responses={
        201: VerificationRequestSerializer,
        409: OpenApiResponse(description='Stale state', examples=[ERROR_EXAMPLES['stale_state']]),
        422: OpenApiResponse(
            description='Requirements not complete',
            examples=[OpenApiExample('Missing Steps', value={
                'error': 'gate_not_satisfied',
                'detail': 'Verification requirements are not complete.',
                'status': 'in_progress',
                'missing_steps': ['business_license'],
            })]
        ),
    }
)
@api_view(['POST'])
@permission_classes([IsAuthenticated])
@throttle_classes([VerificationThrottle])
def submit_verification(request):
    """Submit the caller's verification for review."""
    serializer = VersionedActionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    verification_request = state_machine.submit(
        _subject_for(request.user).pk,
        performed_by=request.user,
        ip_address=get_client_ip(request),
        expected_version=serializer.validated_data.get('expected_version'),
    )
    return Response(VerificationRequestSerializer(verification_request).data, status=status.HTTP_201_CREATED)


@extend_schema(
    tags=['Verification'],
    summary='Start over after rejection',
    description='''
    Moves a rejected verification back to `in_progress`. All documents are
    cleared and must be uploaded again; the phone confirmation and the
    rejection notes are kept.
    ''',
    request=VersionedActionSerializer,
    responses={
        200: VerificationStatusSerializer,
        409: OpenApiResponse(description='Invalid or stale state', examples=list(ERROR_EXAMPLES.values())),
    }
)
@api_view(['POST'])
@permission_classes([IsAuthenticated])
def resubmit_verification(request):
    """Reset a rejected verification for resubmission."""
    serializer = VersionedActionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    subject = state_machine.resubmit_reset(
        _subject_for(request.user).pk,
        performed_by=request.user,
        ip_address=get_client_ip(request),
        expected_version=serializer.validated_data.get('expected_version'),
    )
    return _status_response(subject)


# ==================== Admin Endpoints ====================

REQUEST_ID_PARAMETER = OpenApiParameter(
    name='request_id',
    type=OpenApiTypes.INT,
    location=OpenApiParameter.PATH,
    description='ID of the verification request',
    required=True,
)


@extend_schema(
    tags=['Admin - Verification'],
    summary='List pending verification requests',
    description='Pending requests, oldest submission first. Admin only.',
    responses={
        200: VerificationRequestSerializer(many=True),
        403: OpenApiResponse(description='Permission denied'),
    }
)
@api_view(['GET'])
@permission_classes([IsVerificationReviewer])
def list_pending_requests(request):
    """List pending verification requests (admin only)."""
    return Response(VerificationRequestSerializer(admin_review.list_pending(), many=True).data)


@extend_schema(
    tags=['Admin - Verification'],
    summary='List resolved verification requests',
    description='Approved and rejected requests, most recent decision first. Admin only.',
    responses={
        200: VerificationRequestSerializer(many=True),
        403: OpenApiResponse(description='Permission denied'),
    }
)
@api_view(['GET'])
@permission_classes([IsVerificationReviewer])
def list_resolved_requests(request):
    """List resolved verification requests (admin only)."""
    return Response(VerificationRequestSerializer(admin_review.list_resolved(), many=True).data)


@extend_schema(
    tags=['Admin - Verification'],
    summary='Get verification request details',
    description='''
    Request snapshot plus the live subject, current documents, earlier
    rejections and the audit trail. The view is logged.
    ''',
    parameters=[REQUEST_ID_PARAMETER],
    responses={
        200: RequestDetailSerializer,
        403: OpenApiResponse(description='Permission denied'),
        404: OpenApiResponse(description='Request not found'),
    }
)
@api_view(['GET'])
@permission_classes([IsVerificationReviewer])
def request_details(request, request_id):
    """Get verification request details (admin only)."""
    context = admin_review.get_request(request_id, admin_user=request.user, http_request=request)
    return Response(RequestDetailSerializer(context).data)


@extend_schema(
    tags=['Admin - Verification'],
    summary='Approve verification request',
    description='''
    Moves the subject from `under_review` to `verified`, closes the request as
    approved and marks its documents verified.
    ''',
    parameters=[REQUEST_ID_PARAMETER],
    request=ApproveRequestSerializer,
    responses={
        200: VerificationRequestSerializer,
        404: OpenApiResponse(description='Request not found'),
        409: OpenApiResponse(description='Already decided or stale', examples=list(ERROR_EXAMPLES.values())),
    }
)
@api_view(['POST'])
@permission_classes([IsVerificationReviewer])
def approve_request(request, request_id):
    """Approve a verification request (admin only)."""
    serializer = ApproveRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    closed = admin_review.approve_request(
        request_id,
        request.user,
        notes=serializer.validated_data['notes'],
        http_request=request,
        expected_version=serializer.validated_data.get('expected_version'),
    )
    return Response(VerificationRequestSerializer(closed).data)


@extend_schema(
    tags=['Admin - Verification'],
    summary='Reject verification request',
    description='''
    Moves the subject from `under_review` to `rejected`. Notes are required and
    are shown to the user, including after they start over.
    ''',
    parameters=[REQUEST_ID_PARAMETER],
    request=RejectRequestSerializer,
    examples=[
        OpenApiExample('Rejection', value={'notes': 'blurry ID'}, request_only=True),
    ],
    responses={
        200: VerificationRequestSerializer,
        400: OpenApiResponse(
            description='Missing notes',
            examples=[OpenApiExample('No Notes', value={'error': 'missing_review_notes', 'detail': 'Review notes are required to reject a verification.', 'field': 'notes'})]
        ),
        404: OpenApiResponse(description='Request not found'),
        409: OpenApiResponse(description='Already decided or stale', examples=list(ERROR_EXAMPLES.values())),
    }
)
@api_view(['POST'])
@permission_classes([IsVerificationReviewer])
def reject_request(request, request_id):
    """Reject a verification request with notes (admin only)."""
    serializer = RejectRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    closed = admin_review.reject_request(
        request_id,
        request.user,
        serializer.validated_data['notes'],
        http_request=request,
        expected_version=serializer.validated_data.get('expected_version'),
    )
    return Response(VerificationRequestSerializer(closed).data)
