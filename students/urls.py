from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import (
    RegisterView, CustomAuthToken, UserProfileView, LogoutView,
    SendPasswordResetOTPView, ResetPasswordView, UserViewSet
)

router = DefaultRouter()
router.register(r'users', UserViewSet, basename='user')


urlpatterns = [
    # Authentication
    path('register/', RegisterView.as_view(), name='register'),
    path('login/', CustomAuthToken.as_view(), name='login'),
    path('logout/', LogoutView.as_view(), name='logout'),

    # User profile
    path('me/', UserProfileView.as_view(), name='user-profile'),

    # Password Reset
    path('forgot-password/', SendPasswordResetOTPView.as_view(), name='forgot-password'),
    path('reset-password/', ResetPasswordView.as_view(), name='reset-password'),

    path('', include(router.urls)),
]
