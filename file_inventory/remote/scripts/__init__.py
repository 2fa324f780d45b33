# Remote scripts for execution on scan targets.
#
# These scripts are run on remote systems via SSH with minimal
# dependencies (Python 3.8+ stdlib only). They are loaded and executed
# using the run_python_script() / async_run_python_script() functions
# from executor.py.
#
# Scripts in this package:
# - scan_paths.py: Existence check + extension-filtered recursive file search
