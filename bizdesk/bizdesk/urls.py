from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    # JSON endpoints consumed by the dashboard front-end
    path("api/", include("billing_core.urls")),
]
