"""
Redis Cache Service
Caching layer for frequently accessed data with JSON serialization and TTLs.

Every operation is fail-open: when Redis is not configured or a command
fails, the error is logged and the neutral value is returned.
"""
import functools
import json
import logging
import time

import redis
from flask import current_app, has_app_context

logger = logging.getLogger(__name__)

EXTENSION_KEY = 'redis'


def get_redis_client():
    """Redis client for the current app, built on first use (None when unconfigured)"""
    if not has_app_context():
        return None

    extensions = current_app.extensions
    if EXTENSION_KEY not in extensions:
        url = current_app.config.get('REDIS_URL')
        extensions[EXTENSION_KEY] = (
            redis.from_url(url, decode_responses=True, socket_timeout=5) if url else None
        )
    return extensions[EXTENSION_KEY]


def _debug_enabled():
    return has_app_context() and current_app.debug


class CacheService:
    """Static cache operations over the shared Redis client"""

    @staticmethod
    def is_configured():
        return get_redis_client() is not None

    @staticmethod
    def get(key):
        client = get_redis_client()
        if client is None:
            logger.debug("[Cache] Redis not configured, skipping cache")
            return None

        try:
            start = time.perf_counter()
            cached = client.get(key)
            if _debug_enabled():
                logger.debug("[Cache] GET %s: %s (%.2fms)", key, 'HIT' if cached is not None else 'MISS',
                             (time.perf_counter() - start) * 1000)
            if cached is None:
                return None
            return json.loads(cached)
        except (redis.RedisError, ValueError, TypeError) as e:
            logger.error("[Cache] GET error: %s", e)
            return None

    @staticmethod
    def set(key, data, ttl=300):
        client = get_redis_client()
        if client is None:
            return

        try:
            client.setex(key, ttl, json.dumps(data, default=str))
            if _debug_enabled():
                logger.debug("[Cache] SET %s: %ss TTL", key, ttl)
        except (redis.RedisError, ValueError, TypeError) as e:
            logger.error("[Cache] SET error: %s", e)

    @staticmethod
    def delete(key):
        client = get_redis_client()
        if client is None:
            return

        try:
            client.delete(key)
            if _debug_enabled():
                logger.debug("[Cache] DEL %s", key)
        except redis.RedisError as e:
            logger.error("[Cache] DEL error: %s", e)

    @staticmethod
    def delete_pattern(pattern):
        """Delete all keys matching a glob pattern"""
        client = get_redis_client()
        if client is None:
            return

        try:
            keys = list(client.scan_iter(match=pattern))
            if keys:
                client.delete(*keys)
                logger.debug("[Cache] DEL pattern %s: %d keys", pattern, len(keys))
        except redis.RedisError as e:
            logger.error("[Cache] DEL pattern error: %s", e)

    @staticmethod
    def exists(key):
        client = get_redis_client()
        if client is None:
            return False

        try:
            return client.exists(key) == 1
        except redis.RedisError as e:
            logger.error("[Cache] EXISTS error: %s", e)
            return False

    @staticmethod
    def ttl(key):
        """Remaining TTL in seconds, -1 when unknown"""
        client = get_redis_client()
        if client is None:
            return -1

        try:
            return client.ttl(key)
        except redis.RedisError as e:
            logger.error("[Cache] TTL error: %s", e)
            return -1

    @staticmethod
    def incr(key):
        client = get_redis_client()
        if client is None:
            return 0

        try:
            return client.incr(key)
        except redis.RedisError as e:
            logger.error("[Cache] INCR error: %s", e)
            return 0

    @staticmethod
    def expire(key, ttl):
        client = get_redis_client()
        if client is None:
            return

        try:
            client.expire(key, ttl)
        except redis.RedisError as e:
            logger.error("[Cache] EXPIRE error: %s", e)


class CacheKeys:
    """Cache key builders so every caller names keys the same way"""

    # Dashboards
    @staticmethod
    def student_dashboard(student_id):
        return f'dashboard:student:{student_id}'

    @staticmethod
    def teacher_dashboard(teacher_id):
        return f'dashboard:teacher:{teacher_id}'

    @staticmethod
    def admin_dashboard():
        return 'dashboard:admin'

    # Courses
    @staticmethod
    def active_courses():
        return 'courses:active'

    @staticmethod
    def course_details(course_id):
        return f'course:{course_id}'

    @staticmethod
    def course_stats(course_id):
        return f'course:{course_id}:stats'

    @staticmethod
    def teacher_courses(teacher_id):
        return f'courses:teacher:{teacher_id}'

    # Students
    @staticmethod
    def student_profile(student_id):
        return f'student:{student_id}'

    @staticmethod
    def student_enrollments(student_id):
        return f'enrollments:student:{student_id}'

    @staticmethod
    def student_stats(student_id):
        return f'stats:student:{student_id}'

    # Teachers
    @staticmethod
    def teacher_profile(teacher_id):
        return f'teacher:{teacher_id}'

    @staticmethod
    def teacher_stats(teacher_id):
        return f'stats:teacher:{teacher_id}'

    # Analytics
    @staticmethod
    def platform_stats():
        return 'analytics:platform'

    @staticmethod
    def enrollment_analytics():
        return 'analytics:enrollments'

    @staticmethod
    def revenue_analytics():
        return 'analytics:revenue'

    # Sessions
    @staticmethod
    def session(token):
        return f'session:{token}'

    # Patterns for bulk invalidation
    ALL_DASHBOARDS = 'dashboard:*'
    ALL_COURSES = 'courses:*'
    ALL_STUDENTS = 'student:*'
    ALL_TEACHERS = 'teacher:*'
    ALL_ANALYTICS = 'analytics:*'

    @staticmethod
    def user_dashboard_pattern(user_id):
        return f'dashboard:*:{user_id}'


class CacheTTL:
    SHORT = 60  # frequently changing data
    MEDIUM = 300
    LONG = 1800
    VERY_LONG = 3600
    DAY = 86400


class CacheInvalidator:
    """Per-entity invalidation; callers pick what a write touches"""

    @staticmethod
    def invalidate_course(course_id):
        CacheService.delete(CacheKeys.course_details(course_id))
        CacheService.delete(CacheKeys.course_stats(course_id))
        CacheService.delete(CacheKeys.active_courses())

    @staticmethod
    def invalidate_student(student_id):
        CacheService.delete(CacheKeys.student_dashboard(student_id))
        CacheService.delete(CacheKeys.student_profile(student_id))
        CacheService.delete(CacheKeys.student_enrollments(student_id))
        CacheService.delete(CacheKeys.student_stats(student_id))

    @staticmethod
    def invalidate_teacher(teacher_id):
        CacheService.delete(CacheKeys.teacher_dashboard(teacher_id))
        CacheService.delete(CacheKeys.teacher_profile(teacher_id))
        CacheService.delete(CacheKeys.teacher_stats(teacher_id))
        CacheService.delete(CacheKeys.teacher_courses(teacher_id))
        CacheService.delete_pattern(CacheKeys.user_dashboard_pattern(teacher_id))

    @staticmethod
    def invalidate_analytics():
        CacheService.delete(CacheKeys.admin_dashboard())
        CacheService.delete_pattern(CacheKeys.ALL_ANALYTICS)

    @staticmethod
    def invalidate_all():
        logger.warning("[Cache] Invalidating ALL caches")
        CacheService.delete_pattern('*')


def cached(key_fn, ttl=CacheTTL.MEDIUM):
    """
    Read-through cache decorator.

    key_fn receives the wrapped function's arguments and returns the key.
    A cached value of None counts as a miss.
    """
    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            key = key_fn(*args, **kwargs)
            hit = CacheService.get(key)
            if hit is not None:
                return hit

            result = fn(*args, **kwargs)
            CacheService.set(key, result, ttl)
            return result
        return wrapper
    return decorator
