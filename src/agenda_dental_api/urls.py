from django.contrib import admin
from django.urls import include, path

from notification_engine.adapters.observability.metrics import metrics

urlpatterns = [
    path('admin/',   admin.site.urls),
    path('api/',     include('plugins.django_interface.urls')),
    path('metrics/', metrics, name='metrics'),
]
