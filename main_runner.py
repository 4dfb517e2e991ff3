# main_runner.py
import os
import sys
import importlib.util
import questionary
from config import MODULE_PATH


def list_task_files(module_path=MODULE_PATH):
    """
    Python files in the modules directory that can be run as tasks.
    """
    return sorted(
        f for f in os.listdir(module_path)
        if f.endswith('.py') and not f.startswith('_')
    )


def load_and_run_module(module_path):
    """
    Load a module from the given path and run its main function.
    """
    module_name = os.path.basename(module_path).replace('.py', '')

    spec = importlib.util.spec_from_file_location(module_name, module_path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    if hasattr(module, 'main'):
        module.main()
    else:
        print(f"No main() function found in {module_name}. Skipping...")


def run_selected_module():
    """
    Allow the user to select which task to run from the modules directory.
    """
    if not os.path.isdir(MODULE_PATH):
        print(f"The path '{MODULE_PATH}' is not a valid directory.")
        sys.exit(1)

    python_files = list_task_files()
    if not python_files:
        print("No Python modules found in the specified directory.")
        return

    # Show titles without the .py extension, but keep full filename as value
    choices = [
        questionary.Choice(
            title=f"{idx + 1}. {os.path.splitext(fname)[0]}",
            value=fname
        )
        for idx, fname in enumerate(python_files)
    ]

    selected_file = questionary.select(
        "Select the task you want to run:",
        choices=choices
    ).ask()

    if not selected_file:
        print("No module selected.")
        return

    module_path = os.path.join(MODULE_PATH, selected_file)
    try:
        load_and_run_module(module_path)
    except Exception as e:
        print(f"Error running {module_path}: {e}")
        sys.exit(1)


if __name__ == "__main__":
    run_selected_module()
