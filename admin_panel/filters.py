from django_filters import rest_framework as filters
from students.models import CustomUser
from .models import AdminActivity


class StudentFilter(filters.FilterSet):
    """Filter for student queries"""
    is_active = filters.BooleanFilter()
    internship = filters.NumberFilter(field_name='enrollments__internship__id', distinct=True)
    registration_date_from = filters.DateFilter(field_name='registration_date', lookup_expr='date__gte')
    registration_date_to = filters.DateFilter(field_name='registration_date', lookup_expr='date__lte')
    has_enrollment = filters.BooleanFilter(method='filter_has_enrollment')
    has_certificate = filters.BooleanFilter(method='filter_has_certificate')

    class Meta:
        model = CustomUser
        fields = ['is_active', 'internship']

    def filter_has_enrollment(self, queryset, name, value):
        return queryset.filter(enrollments__isnull=not value).distinct()

    def filter_has_certificate(self, queryset, name, value):
        return queryset.filter(certificates__isnull=not value).distinct()


class AdminActivityFilter(filters.FilterSet):
    """Filter for admin activity logs"""
    action = filters.ChoiceFilter(choices=AdminActivity.ACTION_CHOICES)
    admin = filters.NumberFilter(field_name='admin__id')
    model_name = filters.CharFilter(lookup_expr='icontains')
    timestamp_from = filters.DateTimeFilter(field_name='timestamp', lookup_expr='gte')
    timestamp_to = filters.DateTimeFilter(field_name='timestamp', lookup_expr='lte')

    class Meta:
        model = AdminActivity
        fields = ['action', 'admin', 'model_name']
