from django.contrib import admin
from django.urls import path, include
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from bookings.urls import admin_urlpatterns as booking_admin_urls
from disputes.urls import admin_urlpatterns as dispute_admin_urls
from drivers.urls import admin_urlpatterns as driver_admin_urls
from verification.urls import admin_urlpatterns as verification_admin_urls
from .views import health_check

urlpatterns = [
    path('admin/', admin.site.urls),
    path("health/", health_check), # Health check endpoint

    # JWT issue/refresh (identity + role arrive in the token)
    path('api/auth/token/', TokenObtainPairView.as_view(), name='token-obtain'),
    path('api/auth/token/refresh/', TokenRefreshView.as_view(), name='token-refresh'),

    # Driver APIs (profile, presence, location, discovery)
    path('api/driver/', include('drivers.urls')),

    # Booking lifecycle (clients + drivers)
    path('api/bookings/', include('bookings.urls')),

    # Identity verification (clients)
    path('api/verification/', include('verification.urls')),

    # Disputes (clients + drivers)
    path('api/disputes/', include('disputes.urls')),

    # Admin overrides and settings
    path('api/admin/bookings/', include(booking_admin_urls)),
    path('api/admin/disputes/', include(dispute_admin_urls)),
    path('api/admin/drivers/', include(driver_admin_urls)),
    path('api/admin/verification/', include(verification_admin_urls)),
    path('api/admin/settings/', include('settlements.urls')),
]
