"""Cache keys for relation-scoped listings. Pure functions of the parent id."""


def board_tasks_key(board_id: int) -> str:
    return f"board:{board_id}:tasks"


def task_comments_key(task_id: int) -> str:
    return f"task:{task_id}:comments"


def task_mutation_keys(task_id: int, old_board_id: int, new_board_id: int | None = None):
    """Keys to drop after a task is created, updated or deleted.

    The task's own comment listing is included even though a task change does
    not alter its comments.
    """
    keys = [board_tasks_key(old_board_id), task_comments_key(task_id)]
    if new_board_id is not None and new_board_id != old_board_id:
        keys.append(board_tasks_key(new_board_id))
    return keys
