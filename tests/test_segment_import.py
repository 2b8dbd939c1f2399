"""
Unit tests for studio_core/segment_import.py.

Tests cover batch commit, per-item failure isolation, ordering under
out-of-order completion, and the mask reference/bounding box metadata.
"""

import time
import pytest
import numpy as np
from studio_core.layers import Layer, LayerKind, SegmentMetadata
from studio_core.responses import Asset
from studio_core.segment_import import SegmentImporter


def _square_mask(top, left, size=10, shape=(100, 100)):
    mask = np.zeros(shape + (4,), dtype=np.uint8)
    mask[top:top + size, left:left + size] = 255
    return mask


@pytest.fixture
def masks_by_url():
    return {f"https://cdn.example/mask_{i}.png": _square_mask(i * 15, i * 15) for i in range(5)}


def _items(urls):
    return [{'url': url} for url in urls]


class TestImportSegments:
    """Test SegmentImporter.import_segments."""

    def test_empty_items_clears_segments(self, layer_store, fake_decoder, sample_image):
        layer_store.register("Background", LayerKind.SOURCE, sample_image)
        layer_store.add_batch([
            Layer(name="Segment 1", kind=LayerKind.SEGMENT, raster=sample_image, metadata=SegmentMetadata()),
            Layer(name="Segment 2", kind=LayerKind.SEGMENT, raster=sample_image, metadata=SegmentMetadata()),
        ])
        importer = SegmentImporter(layer_store, decoder=fake_decoder({}))

        report = importer.import_segments(sample_image, [])

        assert report.cleared
        assert not report.no_segments
        assert layer_store.of_kind(LayerKind.SEGMENT) == []
        assert len(layer_store.of_kind(LayerKind.SOURCE)) == 1

    def test_missing_base_is_rejected(self, layer_store, fake_decoder, masks_by_url):
        importer = SegmentImporter(layer_store, decoder=fake_decoder(masks_by_url))

        report = importer.import_segments(None, _items(masks_by_url))

        assert report.rejected
        assert len(layer_store) == 0

    def test_masks_become_segment_layers(self, layer_store, fake_decoder, masks_by_url, sample_image):
        importer = SegmentImporter(layer_store, decoder=fake_decoder(masks_by_url))

        report = importer.import_segments(sample_image, _items(masks_by_url))

        segments = layer_store.of_kind(LayerKind.SEGMENT)
        assert [s.name for s in segments] == [f"Segment {i}" for i in range(1, 6)]
        assert layer_store.layers[:5] == tuple(segments)
        assert layer_store.layers[5].name == "Background"
        assert layer_store.selected_id == segments[0].id
        assert report.created == segments
        assert report.skipped == []

        first = segments[0]
        assert first.raster.shape == sample_image.shape
        assert first.raster[5, 5, 3] == 255
        assert first.raster[50, 50, 3] == 0
        assert first.bounding_box.to_dict() == pytest.approx({'x': 0, 'y': 0, 'width': 10, 'height': 10})
        assert first.metadata.mask_reference == Asset(url="https://cdn.example/mask_0.png")

    def test_failed_item_is_skipped(self, layer_store, fake_decoder, masks_by_url, sample_image):
        urls = list(masks_by_url)
        assets = dict(masks_by_url)
        del assets[urls[2]]
        importer = SegmentImporter(layer_store, decoder=fake_decoder(assets))

        report = importer.import_segments(sample_image, _items(urls))

        segments = layer_store.of_kind(LayerKind.SEGMENT)
        assert len(segments) == 4
        assert [s.name for s in segments] == ["Segment 1", "Segment 2", "Segment 4", "Segment 5"]
        assert [s.metadata.mask_reference.url for s in segments] == [urls[0], urls[1], urls[3], urls[4]]
        assert report.skipped == [2]

    def test_item_without_source_is_skipped(self, layer_store, fake_decoder, masks_by_url, sample_image):
        urls = list(masks_by_url)[:2]
        importer = SegmentImporter(layer_store, decoder=fake_decoder(masks_by_url))

        report = importer.import_segments(sample_image, [{'url': urls[0]}, {}, None, {'url': urls[1]}])

        assert [s.name for s in layer_store.of_kind(LayerKind.SEGMENT)] == ["Segment 1", "Segment 4"]
        assert report.skipped == [1, 2]

    def test_order_preserved_under_out_of_order_completion(self, layer_store, masks_by_url, sample_image):
        urls = list(masks_by_url)

        def slow_decoder(asset):
            # Earlier items finish last
            index = urls.index(asset.source)
            time.sleep(0.02 * (len(urls) - index))
            return masks_by_url[asset.source]

        importer = SegmentImporter(layer_store, decoder=slow_decoder, max_workers=5)
        importer.import_segments(sample_image, _items(urls))

        segments = layer_store.of_kind(LayerKind.SEGMENT)
        assert [s.metadata.mask_reference.url for s in segments] == urls

    def test_all_items_fail(self, layer_store, fake_decoder, sample_image):
        old_source = layer_store.register("Source Asset", LayerKind.SOURCE, sample_image)
        layer_store.add_batch([
            Layer(name="Segment 1", kind=LayerKind.SEGMENT, raster=sample_image, metadata=SegmentMetadata()),
        ])
        importer = SegmentImporter(layer_store, decoder=fake_decoder({}))

        report = importer.import_segments(sample_image, _items(["https://cdn.example/gone.png"]))

        assert report.no_segments
        assert layer_store.of_kind(LayerKind.SEGMENT) == []
        sources = layer_store.of_kind(LayerKind.SOURCE)
        assert len(sources) == 1
        assert sources[0].name == "Background"
        assert sources[0].id != old_source.id

    def test_previous_segments_replaced(self, layer_store, fake_decoder, masks_by_url, sample_image):
        importer = SegmentImporter(layer_store, decoder=fake_decoder(masks_by_url))
        importer.import_segments(sample_image, _items(masks_by_url))

        importer.import_segments(sample_image, _items(list(masks_by_url)[:2]))

        assert len(layer_store.of_kind(LayerKind.SEGMENT)) == 2
        assert len(layer_store.of_kind(LayerKind.SOURCE)) == 1

    def test_explicit_masks_used_as_reference(self, layer_store, fake_decoder, masks_by_url, sample_image):
        urls = list(masks_by_url)[:2]
        importer = SegmentImporter(layer_store, decoder=fake_decoder(masks_by_url))
        refs = [{'url': 'https://cdn.example/ref_a.png'}]

        importer.import_segments(sample_image, _items(urls), masks=refs)

        segments = layer_store.of_kind(LayerKind.SEGMENT)
        assert segments[0].metadata.mask_reference.url == 'https://cdn.example/ref_a.png'
        assert segments[1].metadata.mask_reference.url == urls[1]


class TestPrecutImages:
    """Test importing pre-cut object images."""

    def test_precut_image_is_preview(self, layer_store, fake_decoder, sample_image):
        cutout = np.zeros((50, 80, 4), dtype=np.uint8)
        cutout[10:20, 40:60] = [0, 255, 0, 255]
        importer = SegmentImporter(layer_store, decoder=fake_decoder({'https://cdn.example/obj.png': cutout}))

        importer.import_segments(
            sample_image,
            [{'url': 'https://cdn.example/obj.png'}],
            using_precut_images=True,
            masks=[{'url': 'https://cdn.example/mask.png'}],
        )

        segment = layer_store.of_kind(LayerKind.SEGMENT)[0]
        np.testing.assert_array_equal(segment.raster, cutout)
        assert segment.bounding_box.to_dict() == pytest.approx({'x': 50, 'y': 20, 'width': 25, 'height': 20})
        assert segment.metadata.mask_reference.url == 'https://cdn.example/mask.png'

    def test_precut_without_mask_references_itself(self, layer_store, fake_decoder, sample_image):
        cutout = np.zeros((10, 10, 4), dtype=np.uint8)
        data_url = 'data:image/png;base64,AAAA'
        importer = SegmentImporter(layer_store, decoder=fake_decoder({data_url: cutout}))

        importer.import_segments(sample_image, [{'data_url': data_url}], using_precut_images=True)

        segment = layer_store.of_kind(LayerKind.SEGMENT)[0]
        assert segment.metadata.mask_reference.data_url == data_url
        assert segment.bounding_box is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
