from django.urls import path
from . import views

urlpatterns = [
    path('', views.disputes, name='disputes'),
]

admin_urlpatterns = [
    path('', views.admin_disputes, name='admin-disputes'),
    path('<int:dispute_id>/', views.admin_update_dispute, name='admin-update-dispute'),
]
