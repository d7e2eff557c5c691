from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

router = DefaultRouter()
router.register(r'manage', views.TaskManagementViewSet, basename='task-manage')

urlpatterns = [
    # Student
    path('internship/<int:internship_id>/', views.internship_tasks, name='internship-tasks'),
    path('<int:task_id>/details/', views.task_details, name='task-details'),
    path('<int:task_id>/submit/', views.submit_task, name='submit-task'),
    path('submissions/', views.my_submissions, name='my-submissions'),
    path('submissions/<int:submission_id>/', views.submission_detail, name='submission-detail'),
    path('leaderboard/', views.leaderboard, name='leaderboard'),
    path('admin/enrollments/<int:enrollment_id>/performance/', views.enrollment_performance, name='enrollment-performance'),

    # Admin review
    path('admin/submissions/', views.admin_submissions, name='admin-submissions'),
    path('admin/submissions/bulk-review/', views.bulk_review, name='bulk-review'),
    path('admin/submissions/<int:submission_id>/review/', views.review_submission, name='review-submission'),
    path('admin/submission-stats/', views.submission_stats, name='submission-stats'),

    path('', include(router.urls)),
]
