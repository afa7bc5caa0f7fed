#!/usr/bin/env python
"""
Spatial Trees - Точка входа для CLI

Построение квадродерева / октодерева по облаку точек и выполнение
запросов по боксу и радиусу
"""
import psutil
import os
import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Dict, List

logger = logging.getLogger(__name__)


def setup_logging(log_path: Path, verbose: bool, quiet: bool = False):
    """Настраивает раздельное логирование в файл и консоль."""
    log_path.parent.mkdir(parents=True, exist_ok=True)

    # Уровень для файла всегда DEBUG, для консоли - в зависимости от флагов
    if verbose:
        console_level = logging.DEBUG
    elif quiet:
        console_level = logging.WARNING
    else:
        console_level = logging.INFO

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Убираем все предыдущие обработчики, чтобы избежать дублирования
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    file_handler = logging.FileHandler(log_path, mode='w', encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
    root.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
    root.addHandler(console_handler)


# Импорты модулей проекта
from spatial_trees import __version__
from spatial_trees.config import TreeConfig
from spatial_trees.core.structures import Volume
from spatial_trees.core.tree import Octree, Quadtree, SpatialTree
from spatial_trees.io.loaders import load_point_cloud, validate_point_cloud
from spatial_trees.io.exporters import export_leaves_json, export_query_results, export_statistics
from spatial_trees.visualization.tracer import QueryTraceRecorder


def parse_arguments(argv=None) -> argparse.Namespace:
    """Парсинг аргументов командной строки"""
    parser = argparse.ArgumentParser(
        description='Spatial Trees - квадродеревья и октодеревья для облаков точек',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
    Примеры использования:
    %(prog)s --input cloud.xyz --box 0 0 0 10 10 10
    %(prog)s --input cloud.xyz --dims 2 --radius 50 50 10 --export json xyz
    %(prog)s --input cloud.las --capacity 64 --stats --trace-json
            """
    )

    # Основные параметры
    parser.add_argument('--input', '-i', required=True, type=str,
                        help='Путь к входному облаку точек')
    parser.add_argument('--output', '-o', default='output', type=str,
                        help='Выходная директория (по умолчанию: output)')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    # Экспорт
    parser.add_argument('--export', nargs='+',
                        choices=['none', 'json', 'xyz', 'txt'],
                        default=['json'],
                        help='Форматы экспорта результатов запросов (можно несколько)')

    # Структура дерева
    group_tree = parser.add_argument_group('Структура дерева')
    group_tree.add_argument('--dims', type=int, choices=[2, 3],
                            help='Размерность: 2 - квадродерево, 3 - октодерево (по умолчанию: 3)')
    group_tree.add_argument('--capacity', type=int,
                            help='Ёмкость узла до разбиения (по умолчанию: 8)')
    group_tree.add_argument('--max-depth', type=int,
                            help='Максимальная глубина разбиения (по умолчанию: 32)')
    group_tree.add_argument('--dtype', choices=['float32', 'float64'],
                            help='Скалярный тип координат (по умолчанию: float64)')
    group_tree.add_argument('--bounds', type=float, nargs='+', metavar='V',
                            help='Корневой бокс: MIN... MAX... (по умолчанию - по точкам)')

    # Запросы
    group_query = parser.add_argument_group('Запросы')
    group_query.add_argument('--box', type=float, nargs='+', action='append', default=[],
                             metavar='V', help='Запрос по боксу: MIN... MAX... (можно несколько)')
    group_query.add_argument('--radius', type=float, nargs='+', action='append', default=[],
                             metavar='V', help='Запрос по радиусу: CENTER... R (можно несколько)')

    # Визуализация и отладка
    group_debug = parser.add_argument_group('Визуализация и отладка')
    group_debug.add_argument('--trace-json', action='store_true',
                             help='Сохранить JSON трассировку запросов')
    group_debug.add_argument('--stats', action='store_true',
                             help='Экспортировать статистику построения')
    group_debug.add_argument('--stats-csv', action='store_true',
                             help='Сохранить CSV файл со статистикой по каждому запросу')
    group_debug.add_argument('--verbose', '-v', action='store_true',
                             help='Подробный вывод')
    group_debug.add_argument('--quiet', '-q', action='store_true',
                             help='Минимальный вывод')

    # Дополнительные опции
    parser.add_argument('--config', type=str,
                        help='Путь к файлу конфигурации JSON')
    parser.add_argument('--save-config', type=str,
                        help='Сохранить текущую конфигурацию в файл')

    return parser.parse_args(argv)


def build_tree(points, config: TreeConfig, trace=None) -> SpatialTree:
    """
    Построение дерева по массиву точек

    Объекты дерева - индексы строк points, координата берётся из массива.
    """
    if config.bounds_min is not None:
        volume = Volume(config.bounds_min, config.bounds_max, config.dtype)
    else:
        volume = Volume.from_points(points, config.dtype)

    tree_cls = Quadtree if config.dims == 2 else Octree
    tree = tree_cls(volume, capacity=config.capacity,
                    key=points.__getitem__,
                    max_depth=config.max_depth,
                    trace=trace)

    accepted = tree.extend(range(points.shape[0]))
    if accepted < points.shape[0]:
        logger.warning(f"{points.shape[0] - accepted} points lie outside {volume!r} and were skipped")
    return tree


def run_queries(tree: SpatialTree, args: argparse.Namespace, trace=None) -> Dict[str, List[int]]:
    """Выполнение запросов из аргументов; ключ результата - имя запроса"""
    dims = tree.dims
    results: Dict[str, List[int]] = {}

    for n, values in enumerate(args.box):
        if len(values) != 2 * dims:
            raise ValueError(f"--box ожидает {2 * dims} чисел, получено {len(values)}")
        volume = Volume(values[:dims], values[dims:], tree.bounds.dtype)
        found = tree.get_in_volume(volume)
        if trace:
            trace.record_box_query(volume, len(found))
        results[f'box_{n}'] = found
        logger.info(f"Box query {volume!r}: {len(found)} points")

    for n, values in enumerate(args.radius):
        if len(values) != dims + 1:
            raise ValueError(f"--radius ожидает {dims + 1} чисел, получено {len(values)}")
        center, radius = values[:dims], values[dims]
        found = tree.get_in_radius(center, radius)
        results[f'radius_{n}'] = found
        logger.info(f"Radius query at {center} r={radius}: {len(found)} points")

    return results


def main(argv=None):
    """Основная функция"""
    args = parse_arguments(argv)
    output_dir = Path(args.output)
    log_file_path = output_dir / 'query_log.txt'
    setup_logging(log_file_path, args.verbose, args.quiet)
    logger.info(f"Detailed logs are being saved to {log_file_path}")
    process = psutil.Process(os.getpid())
    trace = None
    try:
        # ============ 1. Загрузка конфигурации ============
        base = None
        if args.config:
            logger.info(f"Loading config from {args.config}")
            base = TreeConfig.load(Path(args.config))
        config = TreeConfig.from_args(args, base)

        if args.save_config:
            config.save(Path(args.save_config))
            logger.info(f"Config saved to {args.save_config}")

        # ============ 2. Загрузка данных ============
        input_path = Path(args.input)
        if not input_path.exists():
            raise FileNotFoundError(f"Input file not found: {input_path}")

        start_time = time.perf_counter()
        points, metadata = load_point_cloud(input_path.as_posix(), dims=config.dims)
        load_time = time.perf_counter() - start_time
        validate_point_cloud(points)

        # ============ 3. Трассировка ============
        if config.trace_enabled or args.stats_csv:
            trace = QueryTraceRecorder(max_queries=config.trace_max_queries)
            trace.record_input_points(points)
            logger.info("Trace/Stats recorder enabled")

        if args.stats_csv:
            trace.start_stats_recording(output_dir / 'query_statistics.csv')

        # ============ 4. Построение дерева ============
        logger.info(f"Building {config.dims}D tree with capacity={config.capacity}...")
        cpu_time_before = process.cpu_times()
        start_time = time.perf_counter()
        tree = build_tree(points, config, trace)
        build_time = time.perf_counter() - start_time
        cpu_time_after = process.cpu_times()

        cpu_time_sec = (cpu_time_after.user - cpu_time_before.user) + (cpu_time_after.system - cpu_time_before.system)
        peak_memory_mb = process.memory_info().rss / (1024 * 1024)

        tree_stats = tree.get_stats()
        logger.info(
            f"Tree built in {build_time:.2f}s: "
            f"{tree_stats['node_count']} nodes, "
            f"{tree_stats['leaf_count']} leaves, "
            f"depth={tree_stats['depth']}"
        )

        # ============ 5. Запросы ============
        results = run_queries(tree, args, trace)

        # ============ 6. Экспорт результатов ============
        output_dir.mkdir(parents=True, exist_ok=True)

        export_formats = [fmt for fmt in args.export if fmt != 'none']
        if results and export_formats:
            export_query_results(results, points, output_dir, export_formats)

        if trace and config.trace_enabled:
            trace.add_custom_data('tree_stats', tree_stats)
            trace.record_final_boxes(tree.root.iter_leaves())
            trace.dump(output_dir / 'trace.json')
            logger.info(f"Trace summary: {trace.get_summary()}")

        if args.stats:
            export_leaves_json(tree, output_dir / 'nodes.json')
            export_statistics(
                tree, points, output_dir / 'statistics.json',
                build_time, peak_memory_mb, cpu_time_sec, config
            )

        # ============ 7. Итоговая информация ============
        logger.info("=" * 60)
        logger.info("Spatial Trees completed successfully!")
        logger.info(f"Input: {points.shape[0]:,} points from {input_path.name} ({metadata['format']})")
        logger.info(f"Queries: {len(results)}, results in {output_dir}")
        logger.info(f"Total time: {load_time + build_time:.2f}s")
        logger.info("=" * 60)

        return 0

    except KeyboardInterrupt:
        logger.info("Process interrupted by user")
        return 130

    except FileNotFoundError as e:
        logger.error(f"File error: {e}")
        return 1

    except ValueError as e:
        logger.error(f"Invalid input: {e}")
        return 2

    except ImportError as e:
        logger.error(f"Missing dependency: {e}")
        return 3

    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 255

    finally:
        if trace:
            trace.close()


if __name__ == '__main__':
    sys.exit(main())
