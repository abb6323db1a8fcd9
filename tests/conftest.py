import logging
import sys

import pytest

from pydantic_faces import clear_descriptor_cache, configure_faces

lib_logger = logging.getLogger("pydantic_faces")
lib_logger.setLevel(logging.DEBUG)
handler = logging.StreamHandler(sys.stdout)
formatter = logging.Formatter("%(asctime)s %(name)-25s %(levelname)-8s %(message)s")
handler.setFormatter(formatter)
lib_logger.addHandler(handler)


@pytest.fixture(autouse=True)
def default_face_configuration():
    """Tests may reconfigure faces; restore the defaults afterwards."""
    yield
    configure_faces()
    clear_descriptor_cache()
