from django.contrib import admin
from .models import Payment, PaymentReceipt


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ('student', 'enrollment', 'amount', 'method', 'status', 'razorpay_order_id',
                    'transaction_id', 'verified_at', 'created_at')
    list_filter = ('status', 'method', 'payment_type')
    search_fields = ('student__email', 'student__name', 'razorpay_order_id', 'razorpay_payment_id', 'transaction_id')
    readonly_fields = ('razorpay_signature', 'verified_by', 'verified_at', 'created_at', 'updated_at')


@admin.register(PaymentReceipt)
class PaymentReceiptAdmin(admin.ModelAdmin):
    list_display = ('receipt_number', 'payment', 'generated_at')
    search_fields = ('receipt_number', 'payment__student__email')
