"""Parallel Executor - runs per-segment work concurrently and joins results in order."""

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Optional

from adburst.core.config import Settings


class ParallelExecutor:
    """Manages controlled parallelism for provider calls and encoder jobs."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize parallel executor.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.max_parallel_api_calls = getattr(settings, "max_parallel_api_calls", 5)

    def execute_batch(
        self,
        tasks: list[Callable[[], Any]],
        task_names: Optional[list[str]] = None,
        max_workers: Optional[int] = None,
        run_id: Optional[str] = None,
    ) -> list[tuple[Any, Optional[Exception]]]:
        """
        Execute a batch of tasks with controlled concurrency.

        Results come back in task order regardless of completion order, so callers
        can join them to segments by index.

        Args:
            tasks: List of callable tasks to execute
            task_names: Optional list of task names for logging
            max_workers: Maximum number of parallel workers (defaults to max_parallel_api_calls)
            run_id: Optional run ID for logging context

        Returns:
            List of tuples: (result, exception) for each task
        """
        if not tasks:
            return []

        max_workers = max(1, max_workers or self.max_parallel_api_calls)
        log_prefix = f"[{run_id}] " if run_id else ""

        def name_of(i: int) -> str:
            return task_names[i] if task_names and i < len(task_names) else f"task_{i+1}"

        start_time = time.time()

        if max_workers == 1:
            results = []
            for i, task in enumerate(tasks):
                try:
                    results.append((task(), None))
                    self.logger.debug(f"{log_prefix}✅ {name_of(i)} completed in {time.time() - start_time:.2f}s")
                except Exception as e:
                    self.logger.warning(f"{log_prefix}❌ {name_of(i)} failed: {e}")
                    results.append((None, e))
            return results

        self.logger.debug(f"{log_prefix}Parallel batch: {len(tasks)} tasks with max {max_workers} workers")
        results: list[tuple[Any, Optional[Exception]]] = [(None, None)] * len(tasks)
        completed_count = 0

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_index = {executor.submit(task): i for i, task in enumerate(tasks)}

            for future in as_completed(future_to_index):
                index = future_to_index[future]
                completed_count += 1
                elapsed = time.time() - start_time
                try:
                    results[index] = (future.result(), None)
                    self.logger.debug(
                        f"{log_prefix}✅ {name_of(index)} completed ({completed_count}/{len(tasks)}) in {elapsed:.2f}s"
                    )
                except Exception as e:
                    self.logger.warning(
                        f"{log_prefix}❌ {name_of(index)} failed ({completed_count}/{len(tasks)}) after {elapsed:.2f}s: {e}"
                    )
                    results[index] = (None, e)

        successful = sum(1 for _, error in results if error is None)
        self.logger.debug(
            f"{log_prefix}Batch complete: {successful}/{len(tasks)} successful in {time.time() - start_time:.2f}s"
        )
        return results
