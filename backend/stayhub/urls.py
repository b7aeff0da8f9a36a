from django.urls import include, path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

urlpatterns = [
    path("api/users/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("api/users/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("api/bookings/", include(("bookings.urls", "bookings"), namespace="bookings")),
    path("api/payments/", include("payments.urls")),
]
