from django.urls import path
from . import views

app_name = 'bookings'

urlpatterns = [
    path('', views.bookings, name='bookings'),
    path('active/', views.active_bookings, name='active-bookings'),
    path('<int:booking_id>/', views.booking_detail, name='booking-detail'),

    # Driver actions
    path('<int:booking_id>/accept/', views.accept_booking, name='accept-booking'),
    path('<int:booking_id>/reject/', views.reject_booking, name='reject-booking'),
    path('<int:booking_id>/start/', views.start_booking, name='start-booking'),
    path('<int:booking_id>/driver-confirm/', views.driver_confirm, name='driver-confirm'),

    # Client actions
    path('<int:booking_id>/client-confirm/', views.client_confirm, name='client-confirm'),
    path('<int:booking_id>/decline-completion/', views.decline_completion, name='decline-completion'),
    path('<int:booking_id>/rating/', views.booking_rating, name='booking-rating'),
]

admin_urlpatterns = [
    path('<int:booking_id>/actions/', views.booking_admin_actions, name='booking-admin-actions'),
    path('<int:booking_id>/force-complete/', views.force_complete, name='force-complete'),
    path('<int:booking_id>/force-cancel/', views.force_cancel, name='force-cancel'),
]
