from rest_framework import serializers
from .models import Payment, PaymentReceipt

MAX_PROOF_BYTES = 5 * 1024 * 1024


class PaymentReceiptSerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentReceipt
        fields = ['receipt_number', 'pdf_file', 'generated_at']


class PaymentSerializer(serializers.ModelSerializer):
    receipt = PaymentReceiptSerializer(read_only=True)
    student_name = serializers.SerializerMethodField()
    student_email = serializers.EmailField(source='student.email', read_only=True)
    internship_title = serializers.CharField(source='enrollment.internship.title', read_only=True)
    verified_by_name = serializers.CharField(source='verified_by.name', read_only=True, default=None)

    class Meta:
        model = Payment
        fields = [
            'id', 'student', 'student_name', 'student_email', 'enrollment', 'internship_title',
            'amount', 'currency', 'payment_type', 'method', 'status',
            'razorpay_order_id', 'razorpay_payment_id', 'transaction_id', 'upi_id',
            'payment_proof', 'remarks', 'verification_message', 'verified_by', 'verified_by_name',
            'verified_at', 'created_at', 'updated_at', 'receipt',
        ]
        read_only_fields = fields

    def get_student_name(self, obj):
        return obj.student.name or obj.student.email


class CreateOrderSerializer(serializers.Serializer):
    enrollment_id = serializers.IntegerField()


class VerifyPaymentSerializer(serializers.Serializer):
    razorpay_order_id = serializers.CharField(max_length=100)
    razorpay_payment_id = serializers.CharField(max_length=100)
    razorpay_signature = serializers.CharField(max_length=255)


class PaymentProofSerializer(serializers.Serializer):
    transaction_id = serializers.CharField(max_length=100)
    upi_id = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    payment_proof = serializers.FileField()
    remarks = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_transaction_id(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Transaction ID is required")
        return value

    def validate_payment_proof(self, value):
        if value.size > MAX_PROOF_BYTES:
            raise serializers.ValidationError("Proof file must be 5MB or smaller")
        return value


class AdminVerifyPaymentSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[Payment.STATUS_VERIFIED, Payment.STATUS_REJECTED])
    review_message = serializers.CharField(required=False, allow_blank=True, default='')
