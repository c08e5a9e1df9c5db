from django.urls import path
from . import views

urlpatterns = [
    path('submit/', views.submit, name='verification-submit'),
    path('status/', views.current_status, name='verification-status'),
]

admin_urlpatterns = [
    path('pending/', views.pending_reviews, name='verification-pending'),
    path('<int:client_id>/review/', views.review, name='verification-review'),
]
