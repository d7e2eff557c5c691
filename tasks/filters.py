from django_filters import rest_framework as filters

from .models import Submission


class SubmissionFilter(filters.FilterSet):
    """Filter for the admin review queue"""
    status = filters.ChoiceFilter(choices=Submission.STATUS_CHOICES)
    internship = filters.NumberFilter(field_name='enrollment__internship__id')
    student = filters.NumberFilter(field_name='student__id')
    task = filters.NumberFilter(field_name='task__id')
    is_late = filters.BooleanFilter()
    submitted_from = filters.DateTimeFilter(field_name='submitted_at', lookup_expr='gte')
    submitted_to = filters.DateTimeFilter(field_name='submitted_at', lookup_expr='lte')

    class Meta:
        model = Submission
        fields = ['status', 'internship', 'student', 'task', 'is_late']
