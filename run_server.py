import os

import uvicorn

from utils.logging_utils import get_tagged_logger, setup_logging

logger = get_tagged_logger(__name__, tag="server")


if __name__ == "__main__":
    setup_logging(level=os.getenv("LOG_LEVEL", "INFO"), job_name="admission_api")
    port = int(os.getenv("PORT", 8000))
    logger.info("Starting admission API on port %d", port)

    uvicorn.run(
        "apar_admission.main:app",
        host="0.0.0.0",
        port=port,
        reload=False,
    )
