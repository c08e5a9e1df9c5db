from django.urls import path
from .views import (
    AdminDriverVerificationView,
    DriverProfileView,
    DriverStatusView,
    DriverLocationUpdateView,
    NearbyDriversView,
)

urlpatterns = [
    path("profile/", DriverProfileView.as_view(), name="driver-profile"),
    path("status/", DriverStatusView.as_view(), name="driver-status"),
    path("location/", DriverLocationUpdateView.as_view(), name="driver-location"),
    path("nearby/", NearbyDriversView.as_view(), name="drivers-nearby"),
]

admin_urlpatterns = [
    path("<int:driver_id>/", AdminDriverVerificationView.as_view(), name="admin-driver-verification"),
]
