"""Tests for the case report form API."""

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from rest_framework.test import APIClient
from rest_framework.authtoken.models import Token

from apps.authentication.models import User, UserRole, Hospital
from apps.case_reports.models import Submission, SubmissionComment, DataStatus
from apps.delete_requests.models import DeleteRequest


class FormAPITestBase(TestCase):
    """Base class with user fixtures and helper methods."""

    @classmethod
    def setUpTestData(cls):
        cls.nurse = User.objects.create_user(
            username='nurse', email='nurse@test.com', password='testpass123',
            hospital=Hospital.SONGSHAN,
        )
        cls.other = User.objects.create_user(
            username='other', email='other@test.com', password='testpass123',
            hospital=Hospital.TAOYUAN,
        )
        cls.admin = User.objects.create_user(
            username='boss', email='boss@test.com', password='testpass123',
            hospital=Hospital.NEIHU, role=UserRole.ADMIN,
        )
        cls.nurse_token = Token.objects.create(user=cls.nurse)
        cls.other_token = Token.objects.create(user=cls.other)
        cls.admin_token = Token.objects.create(user=cls.admin)

    def setUp(self):
        self.client = APIClient()

    def auth_as(self, token):
        self.client.credentials(HTTP_AUTHORIZATION=f'Token {token.key}')

    def create_submission(self, user=None, **overrides):
        user = user or self.nurse
        defaults = {
            'medical_record_number': 'MRN001',
            'admission_date': '2026-01-10',
            'form_data': {
                'hospital': user.hospital,
                'pathogen': 'CRKP',
                'record_time': '2026-01-12 08:00',
            },
        }
        defaults.update(overrides)
        return Submission.objects.create(user=user, **defaults)


class FormListTests(FormAPITestBase):
    """GET /api/v1/forms/"""

    def test_requires_auth(self):
        response = self.client.get('/api/v1/forms/')
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data['detail'], '未登入')

    def test_user_sees_only_own(self):
        self.create_submission()
        self.create_submission(user=self.other, medical_record_number='MRN002')
        self.auth_as(self.nurse_token)
        response = self.client.get('/api/v1/forms/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['medical_record_number'], 'MRN001')

    def test_admin_sees_all(self):
        self.create_submission()
        self.create_submission(user=self.other, medical_record_number='MRN002')
        self.auth_as(self.admin_token)
        response = self.client.get('/api/v1/forms/')
        self.assertEqual(response.data['count'], 2)

    def test_list_fields(self):
        self.create_submission()
        self.auth_as(self.nurse_token)
        item = self.client.get('/api/v1/forms/').data['results'][0]
        self.assertEqual(item['username'], 'nurse')
        self.assertEqual(item['hospital'], Hospital.SONGSHAN)
        self.assertEqual(item['pathogen'], 'CRKP')
        self.assertFalse(item['has_pending_delete'])
        self.assertNotIn('form_data', item)

    def test_has_pending_delete_flag(self):
        submission = self.create_submission()
        DeleteRequest.objects.create(
            submission=submission, requester=self.nurse,
            medical_record_number='MRN001', admission_date='2026-01-10',
        )
        self.auth_as(self.nurse_token)
        item = self.client.get('/api/v1/forms/').data['results'][0]
        self.assertTrue(item['has_pending_delete'])

    def test_filter_by_pathogen(self):
        self.create_submission()
        self.create_submission(
            medical_record_number='MRN002',
            form_data={'hospital': Hospital.SONGSHAN, 'pathogen': 'CRAB'},
        )
        self.auth_as(self.nurse_token)
        response = self.client.get('/api/v1/forms/', {'pathogen': 'CRAB'})
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['medical_record_number'], 'MRN002')

    def test_filter_by_admission_range(self):
        self.create_submission(admission_date='2025-12-01')
        self.create_submission(medical_record_number='MRN002', admission_date='2026-02-01')
        self.auth_as(self.nurse_token)
        response = self.client.get('/api/v1/forms/', {'admission_after': '2026-01-01'})
        self.assertEqual(response.data['count'], 1)


class FormCreateTests(FormAPITestBase):
    """POST /api/v1/forms/"""

    def payload(self, **overrides):
        data = {
            'medical_record_number': 'MRN100',
            'admission_date': '2026-03-01',
            'form_data': {'pathogen': 'CRPA', 'sex': 'F'},
            'data_status': 'complete',
        }
        data.update(overrides)
        return data

    def test_create(self):
        self.auth_as(self.nurse_token)
        response = self.client.post('/api/v1/forms/', self.payload(), format='json')
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['message'], '資料已儲存')
        submission = Submission.objects.get(pk=response.data['id'])
        self.assertEqual(submission.user, self.nurse)
        self.assertEqual(submission.data_status, DataStatus.COMPLETE)
        self.assertEqual(submission.update_count, 1)
        self.assertEqual(submission.form_data['hospital'], Hospital.SONGSHAN)

    def test_default_status_incomplete(self):
        self.auth_as(self.nurse_token)
        data = self.payload()
        del data['data_status']
        response = self.client.post('/api/v1/forms/', data, format='json')
        submission = Submission.objects.get(pk=response.data['id'])
        self.assertEqual(submission.data_status, DataStatus.INCOMPLETE)

    def test_missing_fields(self):
        self.auth_as(self.nurse_token)
        response = self.client.post(
            '/api/v1/forms/', {'medical_record_number': 'MRN100'}, format='json',
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['detail'], '缺少必要欄位')

    def test_bad_admission_date(self):
        self.auth_as(self.nurse_token)
        response = self.client.post(
            '/api/v1/forms/', self.payload(admission_date='01/03/2026'), format='json',
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['detail'], '住院日期格式錯誤')

    def test_over_long_record_number(self):
        self.auth_as(self.nurse_token)
        response = self.client.post(
            '/api/v1/forms/', self.payload(medical_record_number='X' * 51), format='json',
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['detail'], '病歷號長度不可超過50個字元')

    def test_misshapen_antibiotic_details(self):
        self.auth_as(self.nurse_token)
        response = self.client.post(
            '/api/v1/forms/',
            self.payload(form_data={'antibiotic_details': {'carbapenem': ['Meropenem']}}),
            format='json',
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['detail'], '表單資料格式錯誤: antibiotic_details')
        self.assertFalse(Submission.objects.exists())

    def test_pathogen_must_be_single_value(self):
        self.auth_as(self.nurse_token)
        response = self.client.post(
            '/api/v1/forms/',
            self.payload(form_data={'pathogen': ['CRKP', 'CRAB']}),
            format='json',
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['detail'], '表單資料格式錯誤: pathogen')

    def test_form_data_must_be_object(self):
        self.auth_as(self.nurse_token)
        response = self.client.post(
            '/api/v1/forms/', self.payload(form_data=['CRKP']), format='json',
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['detail'], '表單資料格式錯誤')

    def test_duplicate_across_users(self):
        existing = self.create_submission(
            user=self.other, medical_record_number='MRN100', admission_date='2026-03-01',
        )
        self.auth_as(self.nurse_token)
        response = self.client.post('/api/v1/forms/', self.payload(), format='json')
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data['detail'], '此病歷號與住院日期已存在記錄')
        self.assertEqual(response.data['existing_id'], existing.pk)


class FormDetailTests(FormAPITestBase):
    """GET /api/v1/forms/{id}/"""

    def test_owner_gets_form_data(self):
        submission = self.create_submission()
        self.auth_as(self.nurse_token)
        response = self.client.get(f'/api/v1/forms/{submission.pk}/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['form_data']['pathogen'], 'CRKP')

    def test_other_user_forbidden(self):
        submission = self.create_submission()
        self.auth_as(self.other_token)
        response = self.client.get(f'/api/v1/forms/{submission.pk}/')
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data['detail'], '權限不足')

    def test_admin_can_view(self):
        submission = self.create_submission()
        self.auth_as(self.admin_token)
        response = self.client.get(f'/api/v1/forms/{submission.pk}/')
        self.assertEqual(response.status_code, 200)

    def test_missing(self):
        self.auth_as(self.admin_token)
        response = self.client.get('/api/v1/forms/9999/')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['detail'], '找不到資料')


class FormUpdateTests(FormAPITestBase):
    """PUT/PATCH /api/v1/forms/{id}/"""

    def test_put_replaces_form_data(self):
        submission = self.create_submission()
        self.auth_as(self.nurse_token)
        response = self.client.put(
            f'/api/v1/forms/{submission.pk}/',
            {'form_data': {'pathogen': 'CRAB'}, 'data_status': 'complete'},
            format='json',
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['message'], '資料已更新')
        self.assertEqual(response.data['update_count'], 2)
        submission.refresh_from_db()
        self.assertEqual(submission.form_data, {'pathogen': 'CRAB'})
        self.assertEqual(submission.data_status, DataStatus.COMPLETE)

    def test_patch_merges_form_data(self):
        submission = self.create_submission()
        self.auth_as(self.nurse_token)
        self.client.patch(
            f'/api/v1/forms/{submission.pk}/',
            {'form_data': {'sex': 'M'}},
            format='json',
        )
        submission.refresh_from_db()
        self.assertEqual(submission.form_data['sex'], 'M')
        self.assertEqual(submission.form_data['pathogen'], 'CRKP')

    def test_missing_form_data(self):
        submission = self.create_submission()
        self.auth_as(self.nurse_token)
        response = self.client.put(f'/api/v1/forms/{submission.pk}/', {}, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['detail'], '缺少表單資料')

    def test_patch_rejects_misshapen_mic_data(self):
        submission = self.create_submission()
        self.auth_as(self.nurse_token)
        response = self.client.patch(
            f'/api/v1/forms/{submission.pk}/',
            {'form_data': {'mic_data': {'meropenem': ['≥8']}}},
            format='json',
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['detail'], '表單資料格式錯誤: mic_data')
        submission.refresh_from_db()
        self.assertEqual(submission.update_count, 1)
        self.assertNotIn('mic_data', submission.form_data)

    def test_other_user_cannot_update(self):
        submission = self.create_submission()
        self.auth_as(self.other_token)
        response = self.client.put(
            f'/api/v1/forms/{submission.pk}/',
            {'form_data': {'pathogen': 'CRAB'}},
            format='json',
        )
        self.assertEqual(response.status_code, 403)

    def test_admin_can_update_any(self):
        submission = self.create_submission()
        self.auth_as(self.admin_token)
        response = self.client.put(
            f'/api/v1/forms/{submission.pk}/',
            {'form_data': {'pathogen': 'CRAB'}},
            format='json',
        )
        self.assertEqual(response.status_code, 200)


class FormDeleteTests(FormAPITestBase):
    """DELETE /api/v1/forms/{id}/"""

    def test_user_must_file_request(self):
        submission = self.create_submission()
        self.auth_as(self.nurse_token)
        response = self.client.delete(f'/api/v1/forms/{submission.pk}/')
        self.assertEqual(response.status_code, 403)
        self.assertTrue(response.data['require_delete_request'])
        self.assertTrue(Submission.objects.filter(pk=submission.pk).exists())

    def test_admin_deletes(self):
        submission = self.create_submission()
        self.auth_as(self.admin_token)
        response = self.client.delete(f'/api/v1/forms/{submission.pk}/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['message'], '資料已刪除')
        self.assertFalse(Submission.objects.filter(pk=submission.pk).exists())

    def test_admin_delete_closes_pending_request(self):
        submission = self.create_submission()
        request = DeleteRequest.objects.create(
            submission=submission, requester=self.nurse,
            medical_record_number=submission.medical_record_number,
            admission_date=submission.admission_date,
        )
        self.auth_as(self.admin_token)
        self.client.delete(f'/api/v1/forms/{submission.pk}/')

        response = self.client.get('/api/v1/delete-requests/pending-count/')
        self.assertEqual(response.data['count'], 0)
        request.refresh_from_db()
        self.assertEqual(request.status, 'approved')
        self.assertEqual(request.resolved_by, self.admin)

    def test_admin_delete_missing(self):
        self.auth_as(self.admin_token)
        response = self.client.delete('/api/v1/forms/9999/')
        self.assertEqual(response.status_code, 404)


class FormCheckTests(FormAPITestBase):
    """GET /api/v1/forms/check/"""

    def test_found(self):
        submission = self.create_submission()
        self.auth_as(self.nurse_token)
        response = self.client.get(
            '/api/v1/forms/check/',
            {'medical_record_number': 'MRN001', 'admission_date': '2026-01-10'},
        )
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data['exists'])
        self.assertEqual(response.data['submission']['id'], submission.pk)

    def test_other_users_record_not_reported(self):
        self.create_submission(user=self.other)
        self.auth_as(self.nurse_token)
        response = self.client.get(
            '/api/v1/forms/check/',
            {'medical_record_number': 'MRN001', 'admission_date': '2026-01-10'},
        )
        self.assertFalse(response.data['exists'])

    def test_admin_searches_globally(self):
        self.create_submission(user=self.other)
        self.auth_as(self.admin_token)
        response = self.client.get(
            '/api/v1/forms/check/',
            {'medical_record_number': 'MRN001', 'admission_date': '2026-01-10'},
        )
        self.assertTrue(response.data['exists'])

    def test_missing_params(self):
        self.auth_as(self.nurse_token)
        response = self.client.get('/api/v1/forms/check/', {'medical_record_number': 'MRN001'})
        self.assertEqual(response.status_code, 400)


class CommentTests(FormAPITestBase):
    """GET/POST /api/v1/forms/{id}/comments/ and DELETE .../comments/{comment_id}/"""

    def test_add_and_list(self):
        submission = self.create_submission()
        self.auth_as(self.admin_token)
        response = self.client.post(
            f'/api/v1/forms/{submission.pk}/comments/',
            {'body': '請補上血液培養日期'},
            format='json',
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['author'], 'boss')

        self.auth_as(self.nurse_token)
        response = self.client.get(f'/api/v1/forms/{submission.pk}/comments/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['body'], '請補上血液培養日期')

    def test_blank_body(self):
        submission = self.create_submission()
        self.auth_as(self.nurse_token)
        response = self.client.post(
            f'/api/v1/forms/{submission.pk}/comments/', {'body': ''}, format='json',
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['detail'], '留言內容不可空白')

    def test_non_viewer_cannot_comment(self):
        submission = self.create_submission()
        self.auth_as(self.other_token)
        response = self.client.post(
            f'/api/v1/forms/{submission.pk}/comments/', {'body': 'hi'}, format='json',
        )
        self.assertEqual(response.status_code, 403)

    def test_author_deletes_comment(self):
        submission = self.create_submission()
        comment = SubmissionComment.objects.create(
            submission=submission, author=self.nurse, body='note',
        )
        self.auth_as(self.nurse_token)
        response = self.client.delete(
            f'/api/v1/forms/{submission.pk}/comments/{comment.pk}/',
        )
        self.assertEqual(response.status_code, 200)
        self.assertFalse(SubmissionComment.objects.filter(pk=comment.pk).exists())

    def test_owner_cannot_delete_admins_comment(self):
        submission = self.create_submission()
        comment = SubmissionComment.objects.create(
            submission=submission, author=self.admin, body='note',
        )
        self.auth_as(self.nurse_token)
        response = self.client.delete(
            f'/api/v1/forms/{submission.pk}/comments/{comment.pk}/',
        )
        self.assertEqual(response.status_code, 403)

    def test_admin_deletes_any_comment(self):
        submission = self.create_submission()
        comment = SubmissionComment.objects.create(
            submission=submission, author=self.nurse, body='note',
        )
        self.auth_as(self.admin_token)
        response = self.client.delete(
            f'/api/v1/forms/{submission.pk}/comments/{comment.pk}/',
        )
        self.assertEqual(response.status_code, 200)

    def test_missing_comment(self):
        submission = self.create_submission()
        self.auth_as(self.nurse_token)
        response = self.client.delete(f'/api/v1/forms/{submission.pk}/comments/9999/')
        self.assertEqual(response.status_code, 404)


class ImportTests(FormAPITestBase):
    """POST /api/v1/forms/import/ and GET /api/v1/forms/import-template/"""

    def upload(self, content, name='forms.csv'):
        return self.client.post(
            '/api/v1/forms/import/',
            {'file': SimpleUploadedFile(name, content, content_type='text/csv')},
            format='multipart',
        )

    def test_import_rows(self):
        content = (
            '\ufeff病歷號,住院日期(YYYY-MM-DD),病原菌,感染來源(多選用|分隔)\r\n'
            'A1,2026-01-01,CRAB,Lung|Urine\r\n'
            'A2,2026-01-02,CRKP,\r\n'
        ).encode('utf-8')
        self.auth_as(self.nurse_token)
        response = self.upload(content)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['success'], 2)
        self.assertEqual(response.data['failed'], 0)
        submission = Submission.objects.get(medical_record_number='A1')
        self.assertEqual(submission.user, self.nurse)
        self.assertEqual(submission.form_data['primary_source'], ['Lung', 'Urine'])
        self.assertEqual(submission.form_data['hospital'], Hospital.SONGSHAN)

    def test_duplicates_reported_per_line(self):
        self.create_submission(medical_record_number='A1', admission_date='2026-01-01')
        content = '病歷號,住院日期(YYYY-MM-DD)\nA1,2026-01-01\nA2,2026-01-02\n'.encode('utf-8')
        self.auth_as(self.nurse_token)
        response = self.upload(content)
        self.assertEqual(response.data['success'], 1)
        self.assertEqual(response.data['failed'], 1)
        self.assertEqual(response.data['errors'], ['第 2 行: 此病歷號與住院日期已存在記錄'])

    def test_invalid_rows_reported_per_line(self):
        content = (
            '病歷號,住院日期(YYYY-MM-DD)\n'
            'X1,2026/1/15\n'
            f'{"X" * 80},2026-01-15\n'
            'X3,2026-01-15\n'
        ).encode('utf-8')
        self.auth_as(self.nurse_token)
        response = self.upload(content)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['success'], 1)
        self.assertEqual(response.data['failed'], 2)
        self.assertEqual(response.data['errors'], [
            '第 2 行: 住院日期格式錯誤',
            '第 3 行: 病歷號長度不可超過50個字元',
        ])
        self.assertEqual(
            list(Submission.objects.values_list('medical_record_number', 'admission_date')),
            [('X3', '2026-01-15')],
        )

    def test_header_only(self):
        self.auth_as(self.nurse_token)
        response = self.upload('病歷號,住院日期(YYYY-MM-DD)\n'.encode('utf-8'))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['detail'], 'CSV 檔案至少需要標題列和一筆資料')

    def test_missing_file(self):
        self.auth_as(self.nurse_token)
        response = self.client.post('/api/v1/forms/import/', {}, format='multipart')
        self.assertEqual(response.status_code, 400)

    def test_non_utf8(self):
        self.auth_as(self.nurse_token)
        response = self.upload(b'MRN,date\n\xff\xfeA1,2026-01-01\n')
        self.assertEqual(response.status_code, 400)

    def test_template_download(self):
        self.auth_as(self.nurse_token)
        response = self.client.get('/api/v1/forms/import-template/')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response['Content-Type'].startswith('text/csv'))
        self.assertIn('attachment', response['Content-Disposition'])
        body = response.content.decode('utf-8')
        self.assertTrue(body.startswith('\ufeff'))
        self.assertIn('病歷號', body.splitlines()[0])
