import logging

logger = logging.getLogger("filevault_app")
