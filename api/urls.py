# api/urls.py
from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

router = DefaultRouter()
router.register(r'recipients', views.RecipientViewSet, basename='recipient')
router.register(r'donor-organs', views.DonorOrganViewSet, basename='donor-organ')
router.register(r'matches', views.MatchViewSet, basename='match')
router.register(r'notifications', views.NotificationViewSet, basename='notification')

app_name = 'api'

urlpatterns = [
    path('', include(router.urls)),

    path('matching/simulate/', views.simulate_matching, name='simulate-matching'),
    path('waitlist/export/', views.export_waitlist, name='waitlist-export'),
    path('waitlist/stats/', views.waitlist_stats, name='waitlist-stats'),
]

# Available endpoints:
# GET   /api/recipients/                               - Waitlist (?organ=, ?status=)
# PATCH /api/recipients/{id}/                          - Update a recipient
# POST  /api/recipients/{id}/recompute-priority/       - Recalculate priority score
#
# GET   /api/donor-organs/                             - Donor organs
# POST  /api/donor-organs/{id}/run-matching/           - Live matching pass ({"simulate": true} to rank only)
# POST  /api/matching/simulate/                        - Rank against a hypothetical donor
#
# GET   /api/matches/                                  - Recorded matches (?donor_organ=)
# GET   /api/notifications/                            - Own notifications (?unread=1)
# POST  /api/notifications/{id}/read/                  - Mark as read
#
# GET   /api/waitlist/export/                          - Priority-ordered waitlist (?export=csv)
# GET   /api/waitlist/stats/                           - Priority score statistics
