"""
API Tesouraria - extrato bancário e baixa de lançamentos.
Núcleo de conciliação consumido pelo front end de cadastros/lançamentos.
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tesouraria.config import settings
from tesouraria.routers import baixas, extrato, fechamentos, health

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
# Silence httpx per-request logs (one line per Supabase query)
logging.getLogger("httpx").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="API Tesouraria",
    description="Extrato de contas bancárias e baixa de lançamentos a pagar/receber",
    version="1.0.0",
)

origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(extrato.router)
app.include_router(fechamentos.router)
app.include_router(baixas.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
