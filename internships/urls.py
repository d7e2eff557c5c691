from rest_framework.routers import SimpleRouter
from .views import InternshipViewSet

# Mounted at the app root, so no API root view
router = SimpleRouter()
router.register(r"", InternshipViewSet, basename="internship")

urlpatterns = router.urls
