"""
URL configuration for verification app.
"""
from django.urls import path
from apps.verification import views

app_name = 'verification'

urlpatterns = [
    # Self-service endpoints
    path('status/', views.verification_status, name='status'),
    path('phone/send-code/', views.send_phone_code, name='send_phone_code'),
    path('phone/verify-code/', views.verify_phone_code, name='verify_phone_code'),
    path('business-info/', views.update_business_info, name='business_info'),
    path('documents/<str:kind>/', views.document_detail, name='document'),
    path('submit/', views.submit_verification, name='submit'),
    path('resubmit/', views.resubmit_verification, name='resubmit'),

    # Admin endpoints
    path('admin/pending/', views.list_pending_requests, name='list_pending'),
    path('admin/resolved/', views.list_resolved_requests, name='list_resolved'),
    path('admin/requests/<int:request_id>/', views.request_details, name='request_details'),
    path('admin/requests/<int:request_id>/approve/', views.approve_request, name='approve_request'),
    path('admin/requests/<int:request_id>/reject/', views.reject_request, name='reject_request'),
]
