from django.urls import path

from . import views


app_name = "prize"

urlpatterns = [
    path("draw/", views.get_prize, name="get_prize"),
    path("list/", views.list_prizes, name="list_prizes"),
    path("stats/", views.prize_stats, name="prize_stats"),
    path("prizes/", views.create_prize, name="create_prize"),
    path("prizes/<str:prize_id>/", views.prize_detail, name="prize_detail"),
    path("reload/", views.reload_prizes, name="reload_prizes"),
    path("status/", views.app_status, name="app_status"),
    path("data-source/", views.data_source, name="data_source"),
]
