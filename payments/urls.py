from django.urls import path
from . import views

urlpatterns = [
    path('payment-section/<int:enrollment_id>/', views.payment_section, name='payment-section'),
    path('create-order/', views.create_order, name='create-order'),
    path('verify/', views.verify_payment, name='verify-payment'),
    path('webhook/', views.razorpay_webhook, name='razorpay-webhook'),
    path('submit-proof/<int:payment_id>/', views.submit_payment_proof, name='submit-payment-proof'),
    path('history/', views.payment_history, name='payment-history'),
    path('receipt/<int:payment_id>/', views.download_receipt, name='download-receipt'),

    # Admin
    path('admin/payments/', views.admin_payments, name='admin-payments'),
    path('admin/payments/<int:payment_id>/verify/', views.admin_verify_payment, name='admin-verify-payment'),
    path('admin/statistics/', views.payment_statistics, name='payment-statistics'),
]
