"""
Parallel executor module for compiling several documents concurrently.
"""
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Dict, Optional, TypeVar

from edi_spec_compiler.errors import CompilerError
from edi_spec_compiler.logger import get_logger

T = TypeVar("T")


class ParallelExecutor:
    """Runs one task per document on a thread pool."""

    def __init__(self, max_threads: int = 5):
        """
        Args:
            max_threads: Maximum number of concurrent threads
        """
        self.max_threads = max_threads
        self.logger = get_logger()

    def run_parallel(
        self,
        tasks: Dict[str, Any],
        worker: Callable[[str, Any], T],
    ) -> Dict[str, Optional[T]]:
        """
        Run worker(name, payload) for every task.

        Args:
            tasks: name -> payload
            worker: Function producing the result of one task

        Returns:
            name -> result in the order of ``tasks``; None for tasks that raised
            a compiler or input error
        """
        results: Dict[str, Optional[T]] = {}
        total = len(tasks)

        self.logger.info(f"Starting parallel compilation of {total} documents with {self.max_threads} threads")

        with ThreadPoolExecutor(max_workers=self.max_threads) as executor:
            future_to_name = {
                executor.submit(worker, name, payload): name
                for name, payload in tasks.items()
            }

            completed = 0
            for future in as_completed(future_to_name):
                name = future_to_name[future]
                completed += 1
                try:
                    results[name] = future.result()
                    self.logger.info(f"Completed {name} ({completed}/{total})")
                except (CompilerError, ValueError, FileNotFoundError) as e:
                    self.logger.error(f"{name} failed: {e}")
                    results[name] = None

        succeeded = sum(1 for value in results.values() if value is not None)
        self.logger.info(f"Parallel compilation complete: {succeeded}/{total} documents compiled")

        return {name: results.get(name) for name in tasks}
