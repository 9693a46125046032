"""Run the DG Vault API service."""

import uvicorn

from dgvault.config import settings


if __name__ == "__main__":
    uvicorn.run(
        "dgvault.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development",
        log_level=settings.LOG_LEVEL.lower(),
    )
