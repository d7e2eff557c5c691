from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from django.conf.urls.static import static
from django.http import JsonResponse


def home(request):
    return JsonResponse({"message": f"{settings.ORGANIZATION_NAME} API is running."})


urlpatterns = [
    path('', home),
    path('admin/', admin.site.urls),

    path('api/auth/', include(('students.urls', 'students'), namespace='students')),
    path('api/internships/', include(('internships.urls', 'internships'), namespace='internships')),
    path('api/tasks/', include(('tasks.urls', 'tasks'), namespace='tasks')),
    path('api/payments/', include(('payments.urls', 'payments'), namespace='payments')),
    path('api/certificates/', include(('certificates.urls', 'certificates'), namespace='certificates')),
    path('api/admin-panel/', include('admin_panel.urls')),
    path('api/notifications/', include('admin_panel.notification_urls')),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
