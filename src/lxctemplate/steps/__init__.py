# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Build pipeline: create a container, provision it, turn it into a template.

Importing this package registers all steps with the pipeline.
"""

from ..context import BuildContext
from ..pipeline import Pipeline

build_pipeline = Pipeline[BuildContext]("build")

# Import step modules so their decorators register with the pipeline.
# Container setup and provisioning
from . import key_pair as _  # noqa: F401, E402
from . import start_container as _  # noqa: F401, E402
from . import connect as _  # noqa: F401, E402
from . import provision as _  # noqa: F401, E402
from . import cleanup_temp_keys as _  # noqa: F401, E402

# Conversion into a template
from . import convert_to_backup as _  # noqa: F401, E402
from . import locate_backup as _  # noqa: F401, E402
from . import save_to_template as _  # noqa: F401, E402
from . import success as _  # noqa: F401, E402
