"""
URL configuration for Taskflow.
"""
from django.contrib import admin
from django.urls import path
from django.conf import settings
from django.conf.urls.static import static
from ninja import NinjaAPI

from apps.core.handlers import register_exception_handlers

api = NinjaAPI(
    title="Taskflow API",
    version=settings.API_VERSION,
    description="Task and project management API",
    docs_url="/docs",
)
register_exception_handlers(api)

from apps.core.api import router as health_router
from apps.identity.api import auth_router, users_router
from apps.projects.api import router as projects_router
from apps.tasks.api import router as tasks_router
from apps.activity.api import router as activity_router
from apps.notifications.api import router as notifications_router

api.add_router("/", health_router)
api.add_router("/auth/", auth_router)
api.add_router("/users/", users_router)
api.add_router("/projects/", projects_router)
api.add_router("/tasks/", tasks_router)
api.add_router("/activity/", activity_router)
api.add_router("/notifications/", notifications_router)

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', api.urls),
]

# Serve uploaded files in development
if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
