"""Tests for the ProjectGuide singleton."""

from django.test import TestCase

from .models import ProjectGuide


class ProjectGuideModelTests(TestCase):

    def test_load_creates_empty_guide(self):
        guide = ProjectGuide.load()
        self.assertEqual(guide.pk, ProjectGuide.SINGLETON_ID)
        self.assertEqual(guide.content, '')

    def test_load_returns_same_row(self):
        first = ProjectGuide.load()
        first.content = '<p>收案條件</p>'
        first.save()
        self.assertEqual(ProjectGuide.load().content, '<p>收案條件</p>')
        self.assertEqual(ProjectGuide.objects.count(), 1)

    def test_second_instance_overwrites_singleton(self):
        ProjectGuide.load()
        ProjectGuide(content='<h1>v2</h1>').save()
        self.assertEqual(ProjectGuide.objects.count(), 1)
        self.assertEqual(ProjectGuide.load().content, '<h1>v2</h1>')
