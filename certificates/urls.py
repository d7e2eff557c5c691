# certificates/urls.py
from django.urls import path
from rest_framework.routers import SimpleRouter
from .views import CertificateViewSet, generate_certificate, verify_certificate

router = SimpleRouter()
router.register("", CertificateViewSet, basename="certificate")

urlpatterns = [
    path("generate/<int:enrollment_id>/", generate_certificate, name="generate-certificate"),
    path("verify/<str:certificate_number>/", verify_certificate, name="verify-certificate"),
    *router.urls,
]
