"""FastAPI server running the reporter's flush loop"""
import asyncio
import os
import time
from typing import Optional
from fastapi import FastAPI, HTTPException
from config import Config
from metrics.registry import DEFAULT_REGISTRY, MetricsRegistry
from metrics.reporter import Reporter
from logging_config import get_logger, log_flush, log_error


logger = get_logger(__name__)


class ReporterServer:
    """FastAPI server wrapping a Datadog reporter"""

    def __init__(self, config: Config, registry: Optional[MetricsRegistry] = None,
                 reporter: Optional[Reporter] = None):
        self.config = config
        self.registry = registry if registry is not None else DEFAULT_REGISTRY
        self.reporter = reporter if reporter is not None else Reporter.from_config(config, self.registry)
        self.app = FastAPI(
            title="Datadog Metrics Reporter",
            version=config.service_version,
            docs_url=None,
            redoc_url=None,
            openapi_url=None
        )

        # Flush state
        self.last_flush_time = 0
        self.flush_count = 0
        self.flush_errors = 0
        self.flush_task = None

        self._setup_routes()
        self._setup_events()

    def _setup_routes(self):
        """Setup FastAPI routes"""

        @self.app.get('/health')
        def health_check():
            """Health check endpoint"""
            age = time.time() - self.last_flush_time if self.last_flush_time > 0 else float('inf')
            is_healthy = age < self.config.flush_interval * 2

            health_data = {
                "status": "healthy" if is_healthy else "unhealthy",
                "last_flush_seconds_ago": round(age, 1) if age != float('inf') else None,
                "flush_interval": self.config.flush_interval,
                "total_flushes": self.flush_count,
                "flush_errors": self.flush_errors,
                "send_errors": self.reporter.client.send_errors,
            }

            if not is_healthy:
                raise HTTPException(status_code=503, detail=health_data)

            return health_data

        @self.app.get('/status')
        def get_status():
            """Detailed status information"""
            age = time.time() - self.last_flush_time if self.last_flush_time > 0 else float('inf')
            start_time = getattr(self.app.state, "start_time", time.time())

            return {
                "service": {
                    "name": self.config.service_name,
                    "version": self.config.service_version,
                    "uptime_seconds": round(time.time() - start_time, 1),
                    "hostname": os.uname().nodename
                },
                "flush": {
                    "interval_seconds": self.config.flush_interval,
                    "last_flush_seconds_ago": round(age, 1) if age != float('inf') else None,
                    "total_flushes": self.flush_count,
                    "flush_errors": self.flush_errors,
                },
                "statsd": {
                    "address": self.reporter.address,
                    "prefix": self.reporter.prefix,
                    "tags": self.reporter.tags,
                    "percentiles": self.reporter.percentiles,
                    "send_errors": self.reporter.client.send_errors,
                },
                "metrics": self.registry.get_status()
            }

        @self.app.post('/flush')
        async def manual_flush():
            """Manually trigger a flush"""
            try:
                await self._flush()
                return {
                    "success": True,
                    "message": "Metrics flushed",
                    "flush_count": self.flush_count
                }
            except Exception as e:
                log_error(logger, e, {"component": "manual_flush", "endpoint": "/flush"})
                raise HTTPException(status_code=500, detail={"error": str(e)})

    def _setup_events(self):
        """Setup FastAPI startup/shutdown events"""

        @self.app.on_event("startup")
        async def startup_event():
            self.app.state.start_time = time.time()
            logger.info(
                "Application startup initiated",
                service_name=self.config.service_name,
                flush_interval=self.config.flush_interval,
                statsd_address=self.config.statsd_address,
                event_type="server_startup"
            )
            self.flush_task = asyncio.create_task(self._flush_loop())

        @self.app.on_event("shutdown")
        async def shutdown_event():
            logger.info("Shutting down reporter", event_type="server_shutdown")

            if self.flush_task:
                self.flush_task.cancel()
                try:
                    await self.flush_task
                except asyncio.CancelledError:
                    pass

            self.reporter.close()

    async def _flush_loop(self):
        """Background flush loop"""
        while True:
            try:
                await self._flush()
                await asyncio.sleep(self.config.flush_interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                log_error(logger, e, {"component": "flush_loop", "flush_errors": self.flush_errors})
                await asyncio.sleep(min(self.config.flush_interval, 30))

    async def _flush(self):
        """Run one reporter flush off the event loop"""
        try:
            start_time = time.time()
            self.flush_count += 1

            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self.reporter.flush)

            self.last_flush_time = time.time()
            log_flush(logger, len(self.registry), self.last_flush_time - start_time,
                      self.reporter.client.send_errors)

        except Exception as e:
            log_error(logger, e, {"component": "reporter_flush", "flush_count": self.flush_count})
            self.flush_errors += 1
            raise

    def get_app(self) -> FastAPI:
        """Get the FastAPI application"""
        return self.app
