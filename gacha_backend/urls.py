from django.urls import include, path

urlpatterns = [
    path("prize/", include("prize.urls")),
]
